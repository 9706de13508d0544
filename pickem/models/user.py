from datetime import datetime, timezone

from flask_login import UserMixin

from pickem import db, login_manager


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, index=True)

    # Profile information
    profile_image = db.Column(db.String(500))

    # Site-wide admin privileges
    is_admin = db.Column(db.Boolean, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    picks = db.relationship(
        "Pick", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    scores = db.relationship(
        "Score", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    league_memberships = db.relationship(
        "LeagueMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User {self.username}>"

    def get_league_ids(self):
        """Get ids of every league the user belongs to"""
        from .league_member import LeagueMember

        rows = (
            db.session.query(LeagueMember.league_id)
            .filter(LeagueMember.user_id == self.id)
            .order_by(LeagueMember.league_id)
            .all()
        )
        return [row.league_id for row in rows]

    def is_member_of_league(self, league_id):
        """Check if user belongs to a league"""
        return self.league_memberships.filter_by(league_id=league_id).first() is not None


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))
