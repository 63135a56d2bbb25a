"""
API 層

每個 router 只負責：
- 解析 request、呼叫 core 的 Manager
- 把業務異常轉成對應的 HTTP status code
"""
