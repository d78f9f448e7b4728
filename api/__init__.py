"""
API 層（FastAPI routers）

只負責 HTTP 轉換，所有業務邏輯集中在 core.game_manager.GameManager
"""
