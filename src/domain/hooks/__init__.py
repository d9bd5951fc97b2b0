"""フック"""
