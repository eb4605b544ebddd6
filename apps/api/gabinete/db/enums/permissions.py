"""Role permission helper sets."""

from gabinete.db.enums.auth import Role

# Roles that can review the quarantine (restore / permanent delete)
ROLES_CAN_REVIEW_QUARANTINE = {Role.ADMIN}

# Roles that can manage team members and categories
ROLES_CAN_MANAGE_TEAM = {Role.ADMIN}

# Roles that can view the audit trail
ROLES_CAN_VIEW_AUDIT = {Role.ADMIN, Role.PARLIAMENTARY}

# Roles that can edit an existing timeline entry
ROLES_CAN_EDIT_TIMELINE = {Role.ADMIN}

# Roles that can run bulk imports
ROLES_CAN_IMPORT = {Role.ADMIN, Role.ASSESSOR}
