"""ConfigManager - 設定ファイルの読み込み

優先順:
1. 明示的に指定されたパス
2. 環境変数 CLAUDE_DIARY_CONFIG
3. ~/.claude/diary.yaml → diary.yml → diary.json
4. 組み込みデフォルト

読み込み失敗・構文エラー・空ファイルはデフォルトにフォールバックする。
エラー表示はstderrへ（stdoutはレポート出力用）。
"""

import copy
import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from shared.constants import CONFIG_ENV_VAR, DEFAULT_DIARY_DIRNAME, DEFAULT_RECENT_LIMIT

_CONFIG_FILENAMES = ("diary.yaml", "diary.yml", "diary.json")

DEFAULT_CONFIG: Dict[str, Any] = {
    "diary": {
        "diary_dir": None,
        "verbose": False,
        "recent_limit": DEFAULT_RECENT_LIMIT,
    },
    "logging": {
        "log_file": str(Path(tempfile.gettempdir()) / "claude_diary_hook.log"),
        "level": "INFO",
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """設定管理"""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: 設定ファイルのパス（省略時は既定の探索順）
        """
        self.config_path = Path(config_path) if config_path else self._find_config_path()
        self.config = self._load_config()

    @staticmethod
    def _find_config_path() -> Optional[Path]:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

        base_dir = Path.home() / DEFAULT_DIARY_DIRNAME
        for name in _CONFIG_FILENAMES:
            candidate = base_dir / name
            if candidate.exists():
                return candidate
        return None

    def _load_config(self) -> Dict[str, Any]:
        """設定ファイルを読み込み、デフォルトにマージする"""
        if self.config_path is None or not self.config_path.exists():
            return copy.deepcopy(DEFAULT_CONFIG)

        try:
            text = self.config_path.read_text(encoding="utf-8")
            if self.config_path.suffix == ".json":
                data = json.loads(text) if text.strip() else None
            else:
                data = yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            print(f"設定ファイル構文エラー: {self.config_path} ({e})", file=sys.stderr)
            return copy.deepcopy(DEFAULT_CONFIG)
        except OSError as e:
            print(f"設定ファイル読み込みエラー: {self.config_path} ({e})", file=sys.stderr)
            return copy.deepcopy(DEFAULT_CONFIG)

        if not isinstance(data, dict):
            # 空ファイル・コメントのみ・null はNone、それ以外は形式不正
            if data is not None:
                print(f"設定ファイル形式エラー: {self.config_path} (mapping expected)", file=sys.stderr)
            return copy.deepcopy(DEFAULT_CONFIG)

        return _deep_merge(DEFAULT_CONFIG, data)

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.config.get(name)
        return section if isinstance(section, dict) else {}

    @property
    def diary_dir(self) -> Optional[Path]:
        value = self._section("diary").get("diary_dir")
        return Path(value).expanduser() if value else None

    @property
    def verbose(self) -> bool:
        return bool(self._section("diary").get("verbose", False))

    @property
    def recent_limit(self) -> int:
        limit = int(self._section("diary").get("recent_limit", DEFAULT_RECENT_LIMIT))
        return limit if limit >= 1 else DEFAULT_RECENT_LIMIT

    @property
    def log_file(self) -> Path:
        return Path(self._section("logging").get("log_file") or DEFAULT_CONFIG["logging"]["log_file"]).expanduser()

    @property
    def log_level(self) -> str:
        return str(self._section("logging").get("level", "INFO")).upper()
