from enum import IntEnum

MODULE_ID = "condfx"

# World setting holding the full list of effect definitions.
SETTINGS_KEY = "conditionalEffects"

# Carrier flags
FLAG_ASSIGNED = "assignedEffects"      # item -> list[defId]
FLAG_ACTOR = "actorEffects"            # actor -> list[defId]
FLAG_DURATIONS = "durations"           # actor -> {defId: {mode, remaining, combatId}}
FLAG_TRIGGERS = "triggers"             # actor -> {kind: {set, at, tier, amount}}

# Scene flags
SCENE_FLAG = "sceneOverrides"          # legacy {defId: bool}, migrated on demand
FLAG_SCENE_OFF = "sceneDisabled"       # list[defId] force-disabled in this scene
FLAG_PC_TOGGLES = "pcToggles"          # list[defId] on for every player character
FLAG_NPC_TOGGLES = "npcToggles"        # list[defId] on for every adversary

ASSIGNMENT_KEYS = frozenset({FLAG_ASSIGNED, FLAG_ACTOR})
SCENE_KEYS = frozenset({SCENE_FLAG, FLAG_SCENE_OFF, FLAG_PC_TOGGLES, FLAG_NPC_TOGGLES})

ACTOR_CHARACTER = "character"
ACTOR_ADVERSARY = "adversary"

APPLICABLE_ITEM_TYPES = ("weapon", "armor", "domainCard", "feature")

# Record key paths written by the reconciliation families.
KEY_EVASION = "system.evasion"
KEY_DIFFICULTY = "system.difficulty"
KEY_PROFICIENCY = "system.proficiency"
KEY_THRESHOLD_MAJOR = "system.damageThresholds.major"
KEY_THRESHOLD_SEVERE = "system.damageThresholds.severe"

CHANGE_MODE_ADD = "add"

DEFAULT_CHAIN_DEPTH_LIMIT = 3
DEFAULT_TOKEN_DEBOUNCE = 0.3
DEFAULT_ATTACKER_WINDOW = 10.0


class AdvMode(IntEnum):
    DISADVANTAGE = -1
    NORMAL = 0
    ADVANTAGE = 1


STATUSES = {
    "dead": "Dead",
    "deathMove": "Death Move",
    "defeated": "Defeated",
    "hidden": "Hidden",
    "restrained": "Restrained",
    "unconscious": "Unconscious",
    "vulnerable": "Vulnerable",
    "bleeding": "Bleeding",
    "bless": "Blessed",
    "blind": "Blind",
    "burning": "Burning",
    "curse": "Cursed",
    "deaf": "Deaf",
    "disease": "Diseased",
    "downgrade": "Weakened",
    "eye": "Marked",
    "fear": "Frightened",
    "frozen": "Frozen",
    "invisible": "Invisible",
    "paralysis": "Paralyzed",
    "poison": "Poisoned",
    "poisoned": "Poisoned",
    "prone": "Prone",
    "regen": "Regenerating",
    "silence": "Silenced",
    "sleep": "Asleep",
    "stun": "Stunned",
    "upgrade": "Empowered",
}

ATTRIBUTES = {
    "hope": "Hope (current)",
    "hope_pct": "Hope (% of max)",
    "stress": "Stress (current)",
    "stress_pct": "Stress (% of max)",
    "hitPoints": "Hit Points (current)",
    "hitPoints_max": "Hit Points (max)",
    "hitPoints_pct": "Hit Points (% of max)",
    "evasion": "Evasion",
    "proficiency": "Proficiency",
    "armorScore": "Armor Score",
    "agility": "Agility",
    "strength": "Strength",
    "finesse": "Finesse",
    "instinct": "Instinct",
    "presence": "Presence",
    "knowledge": "Knowledge",
}

TRAIT_NAMES = ("agility", "strength", "finesse", "instinct", "presence", "knowledge")

OPERATORS = (">=", "<=", "==", ">", "<")

# Ordered closest to furthest.
RANGE_BANDS = ("melee", "veryClose", "close", "far", "veryFar")
RANGE_LABELS = {
    "melee": "Melee",
    "veryClose": "Very Close",
    "close": "Close",
    "far": "Far",
    "veryFar": "Very Far",
}
DEFAULT_RANGE_THRESHOLDS = {
    "melee": 5.0,
    "veryClose": 15.0,
    "close": 30.0,
    "far": 100.0,
    "veryFar": float("inf"),
}

DAMAGE_THRESHOLDS = ("minor", "major", "severe")
DEFAULT_THRESHOLD_TIERS = {"minor": 1, "major": 2, "severe": 3}

DAMAGE_TYPE_LABELS = {
    "physical": "Physical",
    "magical": "Magical",
    "primaryWeapon": "Primary Weapon",
    "secondaryWeapon": "Secondary Weapon",
    "any": "Any (physical + magical)",
}
# Damage-bonus types treated as compatible with every hitPoints part.
BROAD_DAMAGE_TYPES = frozenset({"any", "primaryWeapon", "secondaryWeapon", "physical", "magical"})
# Types never merged into a part's damage-type collection.
UNMERGED_DAMAGE_TYPES = frozenset({"any", "primaryWeapon", "secondaryWeapon"})

HIT_POINTS_PART = "hitPoints"
