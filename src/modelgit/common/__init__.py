"""
Common: 공통 모듈

- utils: 유틸리티 (로깅, 콘솔 출력)
"""
