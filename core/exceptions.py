"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class FriendsNFundsException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 輸入驗證 ============

class ValidationError(FriendsNFundsException):
    """輸入格式錯誤或超出範圍（名稱空白、天數/金額非正數、負的收益）"""
    pass


# ============ 找不到資源 ============

class NotFoundError(FriendsNFundsException):
    """查無資料的基類"""
    pass


class GameNotFound(NotFoundError):
    """遊戲（邀請碼）不存在"""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class PlayerNotInGame(NotFoundError):
    """玩家不屬於此遊戲"""
    def __init__(self, game_id, player_id):
        self.game_id = game_id
        self.player_id = player_id
        super().__init__(f"Player {player_id} is not in game {game_id}")


# ============ 狀態相關異常 ============

class InvalidStateError(FriendsNFundsException):
    """目前的遊戲狀態不允許此操作（例如加入已開始的遊戲）"""
    pass


class AlreadyJoinedError(FriendsNFundsException):
    """玩家已經加入過這個遊戲了"""
    def __init__(self, game_id, player_id):
        self.game_id = game_id
        self.player_id = player_id
        super().__init__(f"Player {player_id} already joined game {game_id}")


# ============ Store 相關異常 ============

class StoreUnavailableError(FriendsNFundsException):
    """資料庫無法連線或逾時（重試後仍失敗）"""
    pass
