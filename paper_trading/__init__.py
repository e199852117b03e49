"""
=============================================================================
모의 투자 시스템 (Paper Trading)
=============================================================================

[ 시스템 전체 구조 ]

    run_paper_trading.py (진입점 / CLI)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         │
         └── engine/session.py      ← TradingSession (외부에 노출되는 유일한 진입점)
               │
               ├── data/portfolio.py      ← 현금/포지션/평균단가 원장
               ├── data/journal.py        ← 거래 기록 (최신순, 추가 전용)
               ├── data/market_data.py    ← 자산별 시장 상태 + 피드 캐시
               │     ├── simulation/fake_market.py  ← FAKE 자산 가격 생성
               │     └── feeds/                     ← 실제 암호화폐 시세
               └── storage/repository.py  ← 상태 저장/복원 (실패해도 계속 동작)


[ 핵심 추상 클래스 (core/) - 외부 협력자 인터페이스 ]

    core/price_feed.py      → feeds/coingecko.py       (HTTP JSON)
                            → feeds/yahoo_finance.py   (yfinance)

    core/snapshot_store.py  → storage/stores.py        (메모리 / JSON 파일)
                            → storage/clickhouse_store.py


[ 데이터 흐름 ]

    1. 가격 소스(실제 피드 또는 가상 시장)가 현재가 제공
    2. PortfolioLedger.mark_to_market(prices)로 평가액 재계산
    3. 사용자 매수/매도 → 원장 변경 + TradeJournal 기록
    4. 변경된 상태를 SessionRepository로 저장 (실패는 로그만)
"""

__version__ = "0.1.0"
