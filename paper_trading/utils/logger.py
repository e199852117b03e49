"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 체결/거부된 주문, 피드/저장소 실패 등을 기록.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/paper_trading_20240601.log)

[ 호출하는 곳 ]
    - run_paper_trading.py에서 setup_logger() 한 번 호출
    - 각 모듈은 logging.getLogger("paper_trading.<영역>")만 사용
      (ledger, market, feed, storage, session)
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = "paper_trading",
    level: str = "INFO",
    log_dir: str = "logs",
    console: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록. 이미 설정되어 있으면 그대로 반환."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    today = datetime.now().strftime("%Y%m%d")
    file_handler = logging.FileHandler(
        log_path / f"{name}_{today}.log",
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        # 콘솔은 CLI 출력과 섞이지 않도록 stderr
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
