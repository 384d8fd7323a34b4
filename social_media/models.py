from sqlalchemy.orm import declarative_base
from sqlalchemy import BigInteger, Column, ForeignKey, Integer, String

Base = declarative_base()


class AccountRow(Base):
    __tablename__ = "account"

    account_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True)
    password = Column(String(255), nullable=False)


class MessageRow(Base):
    __tablename__ = "message"

    message_id = Column(Integer, primary_key=True, autoincrement=True)
    posted_by = Column(Integer, ForeignKey("account.account_id"), nullable=False)
    message_text = Column(String(255), nullable=False)
    time_posted_epoch = Column(BigInteger, nullable=True)  # caller supplied, unchecked
