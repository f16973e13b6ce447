from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from forum_api.database import get_async_session
from forum_api.deps.auth import require_admin
from forum_api.errors import envelope
from forum_api.models.user_model import User
from forum_api.schemas.common import Envelope
from forum_api.schemas.forum_schemas import ReconcileOut
from forum_api.services.reconcile import reconcile_counters

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/reconcile", response_model=Envelope[ReconcileOut])
async def reconcile(
    dry_run: bool = Query(False, alias="dryRun"),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
):
    drift = await reconcile_counters(db, apply=not dry_run)
    data = {
        "dry_run": dry_run,
        "drift_count": len(drift),
        "drift": [d.to_dict() for d in drift],
    }
    message = f"{len(drift)} drifted field(s) {'found' if dry_run else 'repaired'}"
    return envelope(True, data, message)
