"""
Admin Stats Service
=====================
Aggregated order statistics for the admin dashboard.
Read-only over committed orders.
"""

from typing import Any, Dict, List

from sqlalchemy.orm import Session
from sqlalchemy import func as sa_func, case, extract

from common.helpers import now_utc, month_start_back, money_json
from modules.auth.guard import require_admin
from modules.order.models import Order

MONTHS_BACK = 11  # current month + 11 previous = trailing 12 months


class StatsService:

    def get_overview(self, db: Session) -> Dict[str, Any]:
        """Order count, revenue, average value, paid and delivered counts."""
        row = db.query(
            sa_func.count(Order.id),
            sa_func.coalesce(sa_func.sum(Order.total_price), 0),
            sa_func.coalesce(sa_func.avg(Order.total_price), 0),
            sa_func.coalesce(sa_func.sum(case((Order.is_paid == True, 1), else_=0)), 0),  # noqa: E712
            sa_func.coalesce(sa_func.sum(case((Order.is_delivered == True, 1), else_=0)), 0),  # noqa: E712
        ).one()

        total_orders, total_revenue, average, paid, delivered = row
        return {
            "total_orders": int(total_orders),
            "total_revenue": money_json(total_revenue),
            "average_order_value": money_json(average),
            "paid_orders": int(paid),
            "delivered_orders": int(delivered),
        }

    def get_monthly(self, db: Session) -> List[Dict[str, Any]]:
        """Orders and revenue per calendar month, most recent first."""
        since = month_start_back(now_utc(), MONTHS_BACK)
        year = extract("year", Order.created_at).label("year")
        month = extract("month", Order.created_at).label("month")

        rows = (
            db.query(
                year,
                month,
                sa_func.count(Order.id),
                sa_func.coalesce(sa_func.sum(Order.total_price), 0),
            )
            .filter(Order.created_at >= since)
            .group_by(year, month)
            .order_by(year.desc(), month.desc())
            .all()
        )
        return [
            {"year": int(y), "month": int(m), "orders": int(count), "revenue": money_json(revenue)}
            for y, m, count, revenue in rows
        ]

    def get_order_stats(self, db: Session, actor) -> Dict[str, Any]:
        require_admin(actor)
        return {
            "overview": self.get_overview(db),
            "monthly_stats": self.get_monthly(db),
        }


stats_service = StatsService()
