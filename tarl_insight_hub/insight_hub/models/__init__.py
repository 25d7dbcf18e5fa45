from .user import User
from .permission import Page, RolePagePermission, PageActionPermission
from .menu import UserMenuOrder, UserMenuPreference
