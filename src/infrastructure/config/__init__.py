"""設定管理"""
