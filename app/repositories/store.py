"""
Document store access for hazard reports and their owning users.

``MongoDocumentStore`` talks to MongoDB through motor; ``InMemoryDocumentStore``
keeps the same contract in process for development and tests. Both render
ids as 24-hex strings so handlers never see ``ObjectId`` values.
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.config.database import HAZARD_REPORTS_COLLECTION, USERS_COLLECTION
from app.models.hazard_report import HazardReport
from app.models.user import User

logger = logging.getLogger(__name__)


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


class DocumentStore(Protocol):
    """Interface for the report and user collections."""

    async def create_report(self, fields: dict, user_id: str) -> HazardReport:
        ...

    async def create_report_for_user(
        self, fields: dict, user_id: str, on_inserted: Optional[Callable[[HazardReport], None]] = None
    ) -> HazardReport:
        ...

    async def find_reports(self, user_id: Optional[str] = None) -> List[HazardReport]:
        ...

    async def find_report_by_id(self, report_id: str) -> Optional[HazardReport]:
        ...

    async def update_report_by_id(self, report_id: str, fields: dict) -> Optional[HazardReport]:
        ...

    async def delete_report_by_id(self, report_id: str) -> Optional[HazardReport]:
        ...

    async def create_user(self, fields: dict) -> User:
        ...

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    async def find_user_by_email(self, email: str) -> Optional[User]:
        ...

    async def user_exists(self, email: str, user_name: str) -> bool:
        ...

    async def add_report_to_user(self, user_id: str, report_id: str) -> None:
        ...


def _report_from_doc(doc: dict) -> HazardReport:
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    doc["user"] = str(doc["user"])
    return HazardReport.model_validate(doc)


def _user_from_doc(doc: dict) -> User:
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    doc["reports"] = [str(r) for r in doc.get("reports", [])]
    return User.model_validate(doc)


class MongoDocumentStore:
    def __init__(
        self,
        client: AsyncIOMotorClient,
        db: AsyncIOMotorDatabase,
        use_transactions: bool = False,
    ):
        self._client = client
        self._use_transactions = use_transactions
        self.reports = db[HAZARD_REPORTS_COLLECTION]
        self.users = db[USERS_COLLECTION]

    async def create_report(self, fields: dict, user_id: str, session=None) -> HazardReport:
        doc = {
            **fields,
            "user": ObjectId(user_id),
            "createdAt": datetime.now(timezone.utc),
        }
        result = await self.reports.insert_one(doc, session=session)
        doc["_id"] = result.inserted_id
        return _report_from_doc(doc)

    async def create_report_for_user(
        self, fields: dict, user_id: str, on_inserted: Optional[Callable[[HazardReport], None]] = None
    ) -> HazardReport:
        """Insert the report and append its id to the owner's ``reports``.

        The two writes share a transaction only when ``use_transactions``
        is set; otherwise a failure between them leaves the user list
        without the new id. ``on_inserted`` runs as soon as the report is
        durable: right after the insert, or after the commit.
        """
        if not self._use_transactions:
            report = await self.create_report(fields, user_id)
            if on_inserted is not None:
                on_inserted(report)
            await self.add_report_to_user(user_id, report.id)
            return report
        async with await self._client.start_session() as session:
            async with session.start_transaction():
                report = await self.create_report(fields, user_id, session=session)
                await self.add_report_to_user(user_id, report.id, session=session)
            logger.debug("Report %s and owner %s written in one transaction", report.id, user_id)
        if on_inserted is not None:
            on_inserted(report)
        return report

    async def find_reports(self, user_id: Optional[str] = None) -> List[HazardReport]:
        query = {} if user_id is None else {"user": ObjectId(user_id)}
        return [_report_from_doc(doc) async for doc in self.reports.find(query)]

    async def find_report_by_id(self, report_id: str) -> Optional[HazardReport]:
        doc = await self.reports.find_one({"_id": ObjectId(report_id)})
        return _report_from_doc(doc) if doc else None

    async def update_report_by_id(self, report_id: str, fields: dict) -> Optional[HazardReport]:
        if not fields:
            # $set rejects an empty document
            return await self.find_report_by_id(report_id)
        doc = await self.reports.find_one_and_update(
            {"_id": ObjectId(report_id)},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return _report_from_doc(doc) if doc else None

    async def delete_report_by_id(self, report_id: str) -> Optional[HazardReport]:
        doc = await self.reports.find_one_and_delete({"_id": ObjectId(report_id)})
        return _report_from_doc(doc) if doc else None

    async def create_user(self, fields: dict) -> User:
        doc = {
            **fields,
            "reports": [],
            "createdAt": datetime.now(timezone.utc),
        }
        result = await self.users.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _user_from_doc(doc)

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        if not is_valid_id(user_id):
            return None
        doc = await self.users.find_one({"_id": ObjectId(user_id)})
        return _user_from_doc(doc) if doc else None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        doc = await self.users.find_one({"email": email})
        return _user_from_doc(doc) if doc else None

    async def user_exists(self, email: str, user_name: str) -> bool:
        doc = await self.users.find_one({"$or": [{"email": email}, {"userName": user_name}]})
        return doc is not None

    async def add_report_to_user(self, user_id: str, report_id: str, session=None) -> None:
        await self.users.update_one(
            {"_id": ObjectId(user_id)},
            {"$push": {"reports": ObjectId(report_id)}},
            session=session,
        )


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.reports: Dict[str, dict] = {}
        self.users: Dict[str, dict] = {}

    async def create_report(self, fields: dict, user_id: str) -> HazardReport:
        report_id = str(ObjectId())
        self.reports[report_id] = {
            **copy.deepcopy(fields),
            "_id": report_id,
            "user": user_id,
            "createdAt": datetime.now(timezone.utc),
        }
        return _report_from_doc(self.reports[report_id])

    async def create_report_for_user(
        self, fields: dict, user_id: str, on_inserted: Optional[Callable[[HazardReport], None]] = None
    ) -> HazardReport:
        report = await self.create_report(fields, user_id)
        if on_inserted is not None:
            on_inserted(report)
        await self.add_report_to_user(user_id, report.id)
        return report

    async def find_reports(self, user_id: Optional[str] = None) -> List[HazardReport]:
        return [
            _report_from_doc(doc)
            for doc in self.reports.values()
            if user_id is None or doc["user"] == user_id
        ]

    async def find_report_by_id(self, report_id: str) -> Optional[HazardReport]:
        doc = self.reports.get(report_id)
        return _report_from_doc(doc) if doc else None

    async def update_report_by_id(self, report_id: str, fields: dict) -> Optional[HazardReport]:
        doc = self.reports.get(report_id)
        if doc is None:
            return None
        doc.update(copy.deepcopy(fields))
        return _report_from_doc(doc)

    async def delete_report_by_id(self, report_id: str) -> Optional[HazardReport]:
        doc = self.reports.pop(report_id, None)
        return _report_from_doc(doc) if doc else None

    async def create_user(self, fields: dict) -> User:
        user_id = str(ObjectId())
        self.users[user_id] = {
            **copy.deepcopy(fields),
            "_id": user_id,
            "reports": [],
            "createdAt": datetime.now(timezone.utc),
        }
        return _user_from_doc(self.users[user_id])

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        doc = self.users.get(user_id)
        return _user_from_doc(doc) if doc else None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        for doc in self.users.values():
            if doc.get("email") == email:
                return _user_from_doc(doc)
        return None

    async def user_exists(self, email: str, user_name: str) -> bool:
        return any(
            doc.get("email") == email or doc.get("userName") == user_name
            for doc in self.users.values()
        )

    async def add_report_to_user(self, user_id: str, report_id: str) -> None:
        doc = self.users.get(user_id)
        if doc is not None:
            doc["reports"].append(report_id)
