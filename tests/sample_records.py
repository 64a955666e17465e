"""Record declarations shared by the test suite.

Records live at module level so their string annotations resolve.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from tabula import Indexes, Int32, UInt64, column


@dataclass
class Basic:
    id: int = 0
    name: str = column("size:64", default="")
    state: int = 0


@dataclass
class User:
    id: int = 0
    name: str = column("size:100", default="")


@dataclass
class Post:
    id: int = 0
    author_id: int = column("fk:author", default=0)
    author: User | None = None
    content: str = ""


@dataclass
class Comment:
    """Joins ``post`` without a foreign-key constraint."""

    id: int = 0
    post_id: int = column("join:post", default=0)
    post: Post | None = None
    body: str = ""


@dataclass
class Implicit:
    """``user_id`` joins ``user`` by naming convention alone."""

    id: int = 0
    user_id: int = 0
    user: User | None = None


@dataclass
class WithoutPk:
    first: str = ""
    last: str = ""
    amount: Int32 = 0


@dataclass
class WithPk:
    primary: int = column("pk", default=0)
    first: str = ""
    last: str = ""
    amount: Int32 = 0


@dataclass
class SqlGenModel:
    prim: int = column("pk", default=0)
    first: str = ""
    last: str = ""
    amount: Int32 = 0


@dataclass
class Student:
    id: int = 0
    name: str = ""
    grade: int = 0
    score: int = 0


@dataclass
class TypeSampler:
    id: int = 0
    flag: bool = False
    small: Int32 = 0
    big: int = 0
    unsigned: UInt64 = 0
    ratio: float = 0.0
    short_text: str = column("size:128", default="")
    long_text: str = ""
    huge_text: str = column("size:70000", default="")
    payload: bytes = b""
    short_payload: bytes = column("size:16", default=b"")
    stamp: datetime | None = None
    money: float = column("coltype:double", default=0.0)
    nickname: str | None = None
    tags: list[str] = field(default_factory=list)
    scratch: str = column("-", default="")


@dataclass
class Constrained:
    id: int = 0
    email: str = column("size:100,unique,notnull", default="")
    city: str = column("size:64,index", default="")
    zip_code: str = column("size:10,default:'00000'", default="")
    first: str = ""
    last: str = ""

    @classmethod
    def indexes(cls, indexes: Indexes) -> None:
        indexes.add_unique("first", "last")


@dataclass
class Account:
    __tablename__ = "accounts"

    code: str = column("pk,size:32", default="")
    balance: float = 0.0


@dataclass
class Stamped:
    id: int = 0
    note: str = ""
    created: datetime | None = None
    updated: datetime | None = None


@dataclass
class Guarded:
    id: int = 0
    name: str = ""

    def validate(self, session) -> Exception | None:
        if not self.name:
            raise ValueError("name is required")
        return None


@dataclass
class Flags:
    id: int = 0
    active: bool = False
    counter: UInt64 = 0
    blob: bytes = b""


@dataclass
class AddColumnV1:
    __tablename__ = "add_column"

    id: int = 0
    name: str = ""


@dataclass
class AddColumnV2:
    __tablename__ = "add_column"

    id: int = 0
    name: str = ""
    email: str = column("size:100", default="")


@dataclass
class AddColumnRenamed:
    __tablename__ = "add_column"

    id: int = 0
    title: str = ""
    body: str = ""


# -- broken declarations ---------------------------------------------------


@dataclass
class TwoPks:
    a: int = column("pk", default=0)
    b: int = column("pk", default=0)


@dataclass
class UnknownTagValue:
    id: int = 0
    name: str = column("colour:red", default="")


@dataclass
class UnknownTagFlag:
    id: int = 0
    name: str = column("colour", default="")


@dataclass
class DanglingFk:
    id: int = 0
    owner_id: int = column("fk:owner", default=0)


@dataclass
class FkToScalar:
    id: int = 0
    owner: str = ""
    owner_id: int = column("fk:owner", default=0)


@dataclass
class NoKey:
    name: str = ""
