"""
Seller and platform rollups.

Both are read-only: the same stored data always yields the same numbers.
Money is summed exactly and rounded half-up once, at the end (2 places);
review means are rounded half-up to 1 place.
"""

from typing import Dict, Optional

from ..database import Database
from ..errors import ValidationError
from ..money import line_total, round_half_up, to_decimal
from ..schemas import ROLES

NOT_CANCELLED = {"$ne": "cancelled"}


class StatsService:
    def __init__(self, db: Database):
        self.db = db

    def _review_rollup(self, match: dict) -> Dict[str, float]:
        rows = list(
            self.db["review"].aggregate(
                [
                    {"$match": match},
                    {"$group": {"_id": None, "avg": {"$avg": "$rating"}, "count": {"$sum": 1}}},
                ]
            )
        )
        if not rows or not rows[0]["count"]:
            return {"averageReview": 0, "totalReviews": 0}
        return {
            "averageReview": round_half_up(rows[0]["avg"], 1),
            "totalReviews": rows[0]["count"],
        }

    def seller_stats(self, seller_id: Optional[str]) -> dict:
        if not seller_id:
            raise ValidationError("Seller ID is required")
        medicine_ids = [
            str(m["_id"]) for m in self.db["medicine"].find({"seller_id": seller_id}, {"_id": 1})
        ]
        own = set(medicine_ids)
        in_own = {"items.medicine_id": {"$in": medicine_ids}}

        # an order holding several of the seller's items still counts once
        total_orders = self.db["order"].count_documents(in_own)

        sold = (
            (item["price"], item["quantity"])
            for order in self.db["order"].find({**in_own, "status": NOT_CANCELLED}, {"items": 1})
            for item in order["items"]
            if item["medicine_id"] in own
        )
        total_sales = line_total(sold)

        return {
            "totalProducts": len(medicine_ids),
            "totalOrders": total_orders,
            "totalSales": round_half_up(total_sales, 2),
            **self._review_rollup({"medicine_id": {"$in": medicine_ids}}),
        }

    def admin_stats(self) -> dict:
        by_role = {role: self.db["user"].count_documents({"role": role}) for role in ROLES}

        sales = sum(
            (to_decimal(o.get("total", 0)) for o in self.db["order"].find({"status": NOT_CANCELLED}, {"total": 1})),
            to_decimal(0),
        )

        orders_by_status = {
            row["_id"]: row["count"]
            for row in self.db["order"].aggregate(
                [{"$group": {"_id": "$status", "count": {"$sum": 1}}}]
            )
        }

        return {
            "users": {
                "total": sum(by_role.values()),
                "customers": by_role["customer"],
                "sellers": by_role["seller"],
                "admins": by_role["admin"],
            },
            "totalProducts": self.db["medicine"].count_documents({}),
            "totalOrders": self.db["order"].count_documents({}),
            "totalSales": round_half_up(sales, 2),
            "ordersByStatus": orders_by_status,
            **self._review_rollup({}),
        }

