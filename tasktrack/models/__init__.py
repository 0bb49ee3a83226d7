from .identity import Identity
from .profile import Profile, ProfileRole
from .task import Task, TaskAssignment, TaskStatus
