from fittrack.app import db
import bcrypt

# bcrypt only looks at the first 72 bytes of its input
MAX_CREDENTIAL_BYTES = 72


class User(db.Model):
    __tablename__ = 'users'

    username = db.Column(db.String(150), primary_key=True)
    password_credential = db.Column(db.String(128), nullable=False)

    def __init__(self, username, password, rounds=12):
        self.username = username
        self.set_password(password, rounds=rounds)

    def set_password(self, password, rounds=12):
        salt = bcrypt.gensalt(rounds=rounds)
        self.password_credential = bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def check_password(self, password):
        encoded = password.encode('utf-8')
        if len(encoded) > MAX_CREDENTIAL_BYTES:
            return False
        return bcrypt.checkpw(encoded, self.password_credential.encode('utf-8'))

    def to_dict(self):
        return {
            'username': self.username,
        }

    def __repr__(self):
        return f'<User {self.username!r}>'
