"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- NamingService：邀請碼生成
- PayoutService：獎池與結算計算
- HistoryService：遊戲事件紀錄
"""
