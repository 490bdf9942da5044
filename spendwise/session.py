from typing import Optional

from spendwise.domain import UserData


class Session:
    """Identity of the signed-in user for one client.

    Filled by ``AuthenticationManager.login`` and emptied by ``logout``.  The
    Streamlit app keeps one instance per browser session in
    ``st.session_state``; tests create their own.
    """

    def __init__(self):
        self.user_id: Optional[str] = None
        self.username: str = ""
        self.full_name: str = ""
        self.email: str = ""

    def start(self, user: UserData) -> None:
        self.user_id = user.id
        self.username = user.username
        self.full_name = user.full_name
        self.email = user.email

    def clear(self) -> None:
        self.user_id = None
        self.username = ""
        self.full_name = ""
        self.email = ""

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def user(self) -> Optional[UserData]:
        if not self.user_id:
            return None
        return UserData(id=self.user_id, username=self.username, email=self.email, full_name=self.full_name)

    def __repr__(self) -> str:
        return f"Session(user_id={self.user_id!r}, username={self.username!r})"
