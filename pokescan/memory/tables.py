"""
Fixed Gen 3 lookup tables used by the decoder.

Block orders, nature names, Hidden Power type names, internal → national
species mapping and the species gender-ratio bytes. Everything here is
constant data; nothing is read from the ROM.
"""

from __future__ import annotations

# ── Block permutations ───────────────────────────────────────────────
# PID % 24 → physical layout of the four 12-byte sub-blocks.
# G=Growth, A=Attacks, E=EVs/Condition, M=Misc
BLOCK_ORDER_NAMES: tuple[str, ...] = (
    "GAEM", "GAME", "GEAM", "GEMA", "GMAE", "GMEA",
    "AGEM", "AGME", "AEGM", "AEMG", "AMGE", "AMEG",
    "EGAM", "EGMA", "EAGM", "EAMG", "EMGA", "EMAG",
    "MGAE", "MGEA", "MAGE", "MAEG", "MEGA", "MEAG",
)

GROWTH, ATTACKS, EVS, MISC = 0, 1, 2, 3
_LETTER = {"G": GROWTH, "A": ATTACKS, "E": EVS, "M": MISC}

# BLOCK_ORDERS[i][slot] = logical block stored in physical slot
BLOCK_ORDERS: tuple[tuple[int, int, int, int], ...] = tuple(
    tuple(_LETTER[c] for c in name) for name in BLOCK_ORDER_NAMES  # type: ignore[misc]
)

# ── Natures (PID % 25) ───────────────────────────────────────────────
NATURES: tuple[str, ...] = (
    "Hardy", "Lonely", "Brave", "Adamant", "Naughty",
    "Bold", "Docile", "Relaxed", "Impish", "Lax",
    "Timid", "Hasty", "Serious", "Jolly", "Naive",
    "Modest", "Mild", "Quiet", "Bashful", "Rash",
    "Calm", "Gentle", "Sassy", "Careful", "Quirky",
)

# ── Hidden Power ─────────────────────────────────────────────────────
HIDDEN_POWER_TYPES: tuple[str, ...] = (
    "Fighting", "Flying", "Poison", "Ground", "Rock", "Bug",
    "Ghost", "Steel", "Fire", "Water", "Grass", "Electric",
    "Psychic", "Ice", "Dragon", "Dark",
)

# ── Species ──────────────────────────────────────────────────────────
# Internal 1-251 equal national. 252-276 are unused placeholders.
# Internal 277-411 are Hoenn species in a different order.
MAX_INTERNAL_SPECIES = 411

_HOENN_NATIONAL = (
    252, 253, 254, 255, 256, 257, 258, 259, 260, 261,   # 277-286
    262, 263, 264, 265, 266, 267, 268, 269, 270, 271,   # 287-296
    272, 273, 274, 275, 290, 291, 292, 276, 277, 285,   # 297-306
    286, 327, 278, 279, 283, 284, 320, 321, 300, 301,   # 307-316
    352, 343, 344, 299, 324, 302, 339, 340, 370, 341,   # 317-326
    342, 349, 350, 318, 319, 328, 329, 330, 296, 297,   # 327-336
    309, 310, 322, 323, 363, 364, 365, 331, 332, 361,   # 337-346
    362, 337, 338, 298, 325, 326, 311, 312, 303, 307,   # 347-356
    308, 333, 334, 360, 355, 356, 315, 287, 288, 289,   # 357-366
    316, 317, 357, 293, 294, 295, 366, 367, 368, 359,   # 367-376
    353, 354, 336, 335, 369, 304, 305, 306, 351, 313,   # 377-386
    314, 345, 346, 347, 348, 280, 281, 282, 371, 372,   # 387-396
    373, 374, 375, 376, 377, 378, 379, 382, 383, 384,   # 397-406
    380, 381, 385, 386, 358,                            # 407-411
)

INTERNAL_TO_NATIONAL: dict[int, int] = {
    277 + i: national for i, national in enumerate(_HOENN_NATIONAL)
}
NATIONAL_TO_INTERNAL: dict[int, int] = {v: k for k, v in INTERNAL_TO_NATIONAL.items()}


def national_dex(internal: int) -> int | None:
    """Convert an internal species index to a national dex number, or None if invalid."""
    if 1 <= internal <= 251:
        return internal
    return INTERNAL_TO_NATIONAL.get(internal)


def internal_index(national: int) -> int | None:
    if 1 <= national <= 251:
        return national
    return NATIONAL_TO_INTERNAL.get(national)


# ── Gender ratios ────────────────────────────────────────────────────
# National dex → ratio byte. Female iff (PID & 0xFF) < ratio.
GENDERLESS = 255
ALWAYS_FEMALE = 254
ALWAYS_MALE = 0
DEFAULT_GENDER_RATIO = 127   # 50% female

_RATIO_GROUPS: dict[int, tuple[int, ...]] = {
    GENDERLESS: (
        81, 82, 100, 101, 120, 121, 132, 137, 144, 145, 146, 150, 151,
        201, 233, 243, 244, 245, 249, 250, 251,
        292, 337, 338, 343, 344, 374, 375, 376, 377, 378, 379,
        382, 383, 384, 385, 386,
    ),
    ALWAYS_FEMALE: (29, 30, 31, 113, 115, 124, 238, 241, 242, 314, 380),
    ALWAYS_MALE: (32, 33, 34, 106, 107, 128, 236, 237, 313, 381),
    31: (  # 12.5% female
        1, 2, 3, 4, 5, 6, 7, 8, 9, 133, 134, 135, 136, 138, 139, 140,
        141, 142, 143, 152, 153, 154, 155, 156, 157, 158, 159, 160, 175,
        176, 196, 197, 252, 253, 254, 255, 256, 257, 258, 259, 260,
        345, 346, 347, 348,
    ),
    63: (58, 59, 63, 64, 65, 66, 67, 68, 125, 126, 239, 240),  # 25% female
    191: (35, 36, 37, 38, 39, 40, 173, 174, 209, 210, 298, 300, 301),  # 75% female
}

GENDER_RATIOS: dict[int, int] = {
    species: ratio for ratio, group in _RATIO_GROUPS.items() for species in group
}


def gender_ratio(national: int) -> int:
    return GENDER_RATIOS.get(national, DEFAULT_GENDER_RATIO)


# ── Battle type flag bits (gBattleTypeFlags) ─────────────────────────
BATTLE_TYPE_DOUBLE = 1 << 0
BATTLE_TYPE_LINK = 1 << 1
BATTLE_TYPE_TRAINER = 1 << 3
BATTLE_TYPE_SAFARI = 1 << 7
