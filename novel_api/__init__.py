"""
웹소설 열람/회차 잠금 해제 백엔드
"""

__version__ = "1.0.0"
