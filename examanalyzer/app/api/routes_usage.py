"""
Usage Report API Routes - AI token usage of batch runs and answer evaluations.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from examanalyzer.app.db.database import get_session_local
from examanalyzer.app.db.models import UsageHistory

router = APIRouter(tags=["Usage"])

PERIOD_DAYS = {"weekly": 7, "monthly": 30}


@router.get("/summary")
def get_usage_summary(
    period: str = Query("weekly", description="Period: 'weekly', 'monthly', or 'all'"),
    provider: Optional[str] = None,
):
    """Get usage summary for the specified period."""
    if period not in PERIOD_DAYS and period != "all":
        raise HTTPException(status_code=400, detail="Invalid period. Must be 'weekly', 'monthly' or 'all'")

    now = datetime.utcnow()
    start_date = now - timedelta(days=PERIOD_DAYS[period]) if period in PERIOD_DAYS else None

    with get_session_local()() as session:
        query = session.query(UsageHistory)
        if start_date:
            query = query.filter(UsageHistory.created_at >= start_date)
        if provider:
            query = query.filter(UsageHistory.provider == provider)
        records = query.order_by(UsageHistory.created_at.desc()).all()

    # Group by date
    daily_breakdown = {}
    for r in records:
        date_str = r.created_at.strftime("%Y-%m-%d") if r.created_at else "Unknown"
        day = daily_breakdown.setdefault(date_str, {"tokens": 0, "cost_cents": 0, "papers": 0, "jobs": 0})
        day["tokens"] += r.total_tokens or 0
        day["cost_cents"] += r.estimated_cost_cents or 0
        day["papers"] += r.papers_processed or 0
        day["jobs"] += 1

    total_cost_cents = sum(r.estimated_cost_cents or 0 for r in records)
    return {
        "period": period,
        "start_date": start_date.isoformat() if start_date else None,
        "end_date": now.isoformat(),
        "total_jobs": len(records),
        "total_evaluations": sum(1 for r in records if r.operation == "evaluate"),
        "total_papers": sum(r.papers_processed or 0 for r in records),
        "total_tokens": sum(r.total_tokens or 0 for r in records),
        "total_cost_usd": round(total_cost_cents / 100.0, 4),
        "daily_breakdown": daily_breakdown,
    }
