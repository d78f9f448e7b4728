"""
命名服務：生成與正規化遊戲邀請碼

純計算邏輯，不涉及狀態轉換
"""
import random
import string

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code(length: int = 8) -> str:
    """
    生成隨機的大寫英數邀請碼（同時作為 Game id）

    範例：K7QX2M9A

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 36^8 ≈ 2.8 兆種可能，碰撞機率極低，但不是安全等級的秘密
    """
    return ''.join(random.choices(INVITE_CODE_ALPHABET, k=length))


def normalize_invite_code(code) -> str:
    """使用者輸入的邀請碼：去掉前後空白並轉大寫"""
    return str(code).strip().upper()
