"""Mock walkthrough for development without a diff or LLM access.

Used by ``docent --mock`` and by the tests. The demo tells the story of a
small session-management feature across five steps.
"""

from .models import Hunk, Priority, Step, Walkthrough

# Sample steps for demo mode: (title, priority, summary, hunks)
DEMO_STEPS = [
    (
        "Add UserSession model",
        Priority.CRITICAL,
        "Introduces a **UserSession** dataclass to track authenticated sessions. "
        "This is the foundation for session management, storing the user id, "
        "creation time and expiry.",
        [
            ("app/models/session.py", 1, 24, """@@ -0,0 +1,24 @@
+import uuid
+from dataclasses import dataclass, field
+from datetime import datetime, timedelta, timezone
+
+
+def _now() -> datetime:
+    return datetime.now(timezone.utc)
+
+
+@dataclass
+class UserSession:
+    user_id: uuid.UUID
+    duration: timedelta
+    id: uuid.UUID = field(default_factory=uuid.uuid4)
+    created_at: datetime = field(default_factory=_now)
+    is_active: bool = True
+
+    @property
+    def expires_at(self) -> datetime:
+        return self.created_at + self.duration
+
+    @classmethod
+    def start(cls, user_id: uuid.UUID, hours: int = 24) -> "UserSession":
+        return cls(user_id=user_id, duration=timedelta(hours=hours))"""),
        ],
    ),
    (
        "Implement session validation",
        Priority.CRITICAL,
        "Adds validation to check whether a session is still usable. Sessions "
        "are invalid once expired or explicitly deactivated. **Security "
        "relevant**: every protected request depends on this check.",
        [
            ("app/models/session.py", 25, 41, """@@ -24,0 +25,17 @@
+    def is_valid(self) -> bool:
+        return self.is_active and _now() < self.expires_at
+
+    def invalidate(self) -> None:
+        self.is_active = False
+
+    def refresh(self, hours: int = 24) -> None:
+        if self.is_valid():
+            self.created_at = _now()
+            self.duration = timedelta(hours=hours)
+
+    def time_remaining(self) -> timedelta | None:
+        if not self.is_valid():
+            return None
+        return self.expires_at - _now()
+
+"""),
        ],
    ),
    (
        "Update API middleware",
        Priority.NORMAL,
        "Wires session validation into the request middleware. Protected "
        "endpoints now reject requests without a valid session with **401 "
        "Unauthorized**.",
        [
            ("app/http/middleware.py", 12, 30, """@@ -12,8 +12,19 @@
 from app.models.session import UserSession
+from app.http.errors import SessionExpired, Unauthorized


 def require_auth(handler):
     def wrapper(request):
-        # TODO: check the session
-        return handler(request)
+        session: UserSession | None = request.session
+        if session is None:
+            raise Unauthorized()
+        if not session.is_valid():
+            raise SessionExpired()
+        return handler(request)

     return wrapper"""),
            ("app/http/errors.py", 40, 47, """@@ -38,2 +40,8 @@
 class ApiError(Exception):
     status = 500
+
+class Unauthorized(ApiError):
+    status = 401
+
+class SessionExpired(ApiError):
+    status = 401"""),
        ],
    ),
    (
        "Add unit tests",
        Priority.MINOR,
        "Test coverage for the session model: validity, invalidation and refresh.",
        [
            ("tests/test_session.py", 1, 22, """@@ -0,0 +1,22 @@
+import uuid
+from datetime import timedelta
+
+from app.models.session import UserSession
+
+
+def test_new_session_is_valid():
+    session = UserSession.start(uuid.uuid4())
+    assert session.is_valid()
+
+
+def test_invalidated_session():
+    session = UserSession.start(uuid.uuid4())
+    session.invalidate()
+    assert not session.is_valid()
+
+
+def test_refresh_extends_expiry():
+    session = UserSession(user_id=uuid.uuid4(), duration=timedelta(seconds=1))
+    before = session.expires_at
+    session.refresh(hours=1)
+    assert session.expires_at > before"""),
        ],
    ),
    (
        "Update documentation",
        Priority.MINOR,
        "Documents the session authentication requirements and the new error "
        "responses in the API reference.",
        [
            ("docs/API.md", 45, 58, """@@ -45,3 +45,14 @@
 ## Authentication

-All endpoints require authentication.
+All endpoints require a valid session token.
+
+Sessions are created on login and expire after 24 hours.
+
+| Status | Code | Description |
+|--------|------|-------------|
+| 401 | `unauthorized` | No session token provided |
+| 401 | `session_expired` | Session has expired |
+
+Clients should handle 401 responses by redirecting to login."""),
        ],
    ),
]


def mock_walkthrough() -> Walkthrough:
    """Build the demo walkthrough."""
    steps = []
    for number, (title, priority, summary, hunks) in enumerate(DEMO_STEPS, 1):
        steps.append(Step(
            id=str(number),
            title=title,
            summary=summary,
            priority=priority,
            hunks=tuple(
                Hunk(file_path=path, start_line=start, end_line=end, content=content)
                for path, start, end, content in hunks
            ),
        ))
    return Walkthrough(steps)
