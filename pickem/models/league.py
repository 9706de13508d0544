from datetime import datetime, timezone

from pickem import db


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    is_public = db.Column(db.Boolean, default=False)

    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    admin = db.relationship("User", foreign_keys=[admin_id])
    members = db.relationship(
        "LeagueMember", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<League {self.name}>"

    def get_members(self):
        """Get all memberships with their users loaded, in join order"""
        from sqlalchemy.orm import joinedload

        from .league_member import LeagueMember

        return (
            self.members.options(joinedload(LeagueMember.user))
            .order_by(LeagueMember.id)
            .all()
        )

    def is_user_member(self, user_id):
        """Check if user is a member"""
        return self.members.filter_by(user_id=user_id).first() is not None

    def add_member(self, user):
        """Add a user to the league"""
        from .league_member import LeagueMember

        if self.is_user_member(user.id):
            return False, "User is already a member"

        membership = LeagueMember(user_id=user.id, league_id=self.id)
        db.session.add(membership)
        return True, "User added successfully"

    @staticmethod
    def get_ids_with_members():
        """Get ids of every league that has at least one member"""
        from .league_member import LeagueMember

        rows = (
            db.session.query(LeagueMember.league_id)
            .distinct()
            .order_by(LeagueMember.league_id)
            .all()
        )
        return [row.league_id for row in rows]
