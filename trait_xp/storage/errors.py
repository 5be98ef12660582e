"""
持久化错误
调用方可重试；评分层自身不做重试
"""


class PersistenceError(Exception):
    """存储读写失败"""


class LedgerWriteError(PersistenceError):
    """经验账本写入失败"""


class MintError(PersistenceError):
    """代币铸造失败"""
