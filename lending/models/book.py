from lending.extensions import db
from lending.utils.clock import utcnow


class Book(db.Model):
    __tablename__ = "books"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, index=True)
    author = db.Column(db.String(200), nullable=False, index=True)
    isbn = db.Column(db.String(32), unique=True, nullable=True, index=True)

    category = db.Column(db.String(100), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    cover_image = db.Column(db.String(500), nullable=True)
    link = db.Column(db.String(500), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    total_copies = db.Column(db.Integer, nullable=False, default=1)
    available_copies = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    tags = db.relationship(
        "BookTag", backref="book", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def tag_names(self):
        return [t.tag for t in self.tags]

    def to_public_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "coverImage": self.cover_image,
            "link": self.link,
            "isbn": self.isbn,
            "tags": self.tag_names,
            "category": self.category,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class BookTag(db.Model):
    __tablename__ = "book_tags"
    __table_args__ = (db.UniqueConstraint("book_id", "tag", name="uq_book_tags_book_tag"),)

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    tag = db.Column(db.String(100), nullable=False, index=True)
