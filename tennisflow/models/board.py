from sqlalchemy import BigInteger, Column, ForeignKey, String, Text

from tennisflow.models.base import BaseModel, BigIntPK


class BoardPost(BaseModel):
    """커뮤니티 게시글"""

    __tablename__ = "board_posts"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    author_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="free")
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(50), nullable=True)
    brand = Column(String(100), nullable=True)
