"""
Central constants for the State 244 Hub.
"""
from __future__ import annotations

STATE_NUMBER = 244

# Profile roles, highest first
ROLE_SUPERADMIN = "superadmin"
ROLE_R5 = "r5"
ROLE_R4 = "r4"
ROLE_MEMBER = "member"
VALID_ROLES = (ROLE_SUPERADMIN, ROLE_R5, ROLE_R4, ROLE_MEMBER)
OFFICER_ROLES = frozenset({ROLE_R4, ROLE_R5, ROLE_SUPERADMIN})

RECRUITMENT_STATUSES = ("open", "closed", "invite_only")
RECRUITMENT_STATUS_TEXT = {
    "open": "Open for applications",
    "closed": "Not recruiting",
    "invite_only": "Invite only",
}

# Migration applications
APPLICATION_STATUSES = ("submitted", "reviewing", "approved", "rejected")
STAGE_STATUSES = ("pending", "approved", "rejected")
REVIEW_STAGES = ("alliance", "president")
REVIEW_DECISIONS = ("approve", "reject")
APPLICATION_FILTERS = ("all", "awaiting_alliance", "awaiting_president", "approved", "rejected")

# Profile field limits
DISPLAY_NAME_MAX = 50
NOTES_MAX = 500
HQ_LEVEL_MIN = 1
HQ_LEVEL_MAX = 35
PASSWORD_MIN = 6

# Contact inbox
CONTACT_TOPICS = frozenset({"general", "alliance", "support", "bug", "partnership"})
CONTACT_STATUSES = ("new", "read", "replied", "archived")

# State info proposals
PROPOSAL_STATUSES = ("pending", "approved", "rejected")
PROPOSAL_APPROVALS_REQUIRED = 2

# War plan
GLORY_WAR_MODE = "glory_war"
WAR_TEAMS = ("attacker", "defender")

# AI studio
AI_IMAGE_TYPES = ("banner", "emblem", "logo_draft")
PRESENTATION_TONES = ("formal", "casual", "enthusiastic", "professional")
AI_IMAGE_DAILY_LIMIT = 5

# Rate limits
RESOURCE_APPLICATION_SUBMIT = "application_submit"
RESOURCE_AI_IMAGE = "ai_image_generate"
APPLICATION_SUBMIT_HOURLY_LIMIT = 5
CONTACT_HOURLY_LIMIT = 5

# Chat
CHAT_ROOM = "state-244-diplomacy"
CHAT_MESSAGE_MAX = 2000
CHAT_IMAGE_MAX_BYTES = 5 * 1024 * 1024
CHAT_IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/gif", "image/webp"})
