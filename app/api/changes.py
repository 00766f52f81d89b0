from fastapi import APIRouter, Depends

from app.api.deps import get_feed
from app.core.auth import verify_webhook
from app.core.realtime import ChangeFeed
from app.models.change import ChangeEvent

router = APIRouter()


@router.post("/changes", dependencies=[Depends(verify_webhook)])
async def receive_change(change: ChangeEvent, feed: ChangeFeed = Depends(get_feed)) -> dict:
    """백엔드 데이터베이스 웹훅 변경 알림을 수신

    Args:
        change: 변경 알림 페이로드
        feed: 변경 알림 허브

    Returns:
        처리 결과
    """
    delivered = feed.publish(change)
    return {"status": "accepted", "table": change.table, "delivered": delivered}
