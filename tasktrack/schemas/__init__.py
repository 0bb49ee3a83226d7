from .profile import ProfileOut, ProfileRoleUpdate, TeamMemberOut, SignupRequest, LoginRequest
from .tokens import Token
from .task import AssigneeOut, TaskCreate, TaskStatusUpdate, TaskOut
