"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有狀態轉換
- Manager：管理 Game 與 Player 的生命週期
- Store：持久層（engine 與 session factory）
- Locks：並發控制工具
"""
