from fittrack.app import db
from datetime import datetime, timezone
import time


def now_millis():
    return int(time.time() * 1000)


class WeightEntry(db.Model):
    __tablename__ = 'weight_entries'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    owner_username = db.Column(
        db.String(150), db.ForeignKey('users.username'), nullable=False, index=True
    )
    recorded_at = db.Column(db.BigInteger, nullable=False, index=True)  # epoch milliseconds
    weight_value = db.Column(db.Float, nullable=False)  # in lbs

    # Relationships
    owner = db.relationship('User', backref=db.backref('weight_entries', lazy=True))

    @property
    def recorded_datetime(self):
        return datetime.fromtimestamp(self.recorded_at / 1000, tz=timezone.utc)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.owner_username,
            'recorded_at': self.recorded_at,
            'date': self.recorded_datetime.strftime('%Y-%m-%d'),
            'weight': self.weight_value
        }

    def __repr__(self):
        return f'<WeightEntry {self.id} {self.owner_username!r} {self.weight_value} lbs>'
