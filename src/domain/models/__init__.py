"""データモデル"""
