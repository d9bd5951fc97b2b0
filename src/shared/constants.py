"""共通定数"""

# ストレージファイル名と旧配置のサブディレクトリ名
DIARY_DB_FILENAME = "diary.db"
LEGACY_DIARY_SUBDIR = "diaries"

# 既定の格納先（ホーム配下）
DEFAULT_DIARY_DIRNAME = ".claude"

# 設定ファイル探索用の環境変数
CONFIG_ENV_VAR = "CLAUDE_DIARY_CONFIG"

# 説明文の切り詰め（文字数）
DESCRIPTION_MAX_LEN = 80
DESCRIPTION_TRUNCATE_LEN = 77
DESCRIPTION_MIN_LEN = 10

# このサイズ以下のプロンプトはGeneral成果を作らない
GENERAL_PROMPT_MIN_LEN = 20

# 目的・課題の切り詰め
OBJECTIVE_MAX_LEN = 100
ISSUE_MAX_LEN = 150

# Other系イベントで応答を成果とみなす最小長
RESPONSE_MIN_LEN = 50

# --show-recent の既定件数
DEFAULT_RECENT_LIMIT = 5

# カテゴリ名
CATEGORY_CODE_DEVELOPMENT = "Code Development"
CATEGORY_CODE_ANALYSIS = "Code Analysis"
CATEGORY_ANALYSIS = "Analysis"
CATEGORY_GENERAL = "General"
CATEGORY_OTHER = "Other"
