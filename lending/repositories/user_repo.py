from lending.extensions import db
from lending.models.user import User


class UserRepo:
    @staticmethod
    def get_by_id(user_id: int):
        return db.session.get(User, user_id)
