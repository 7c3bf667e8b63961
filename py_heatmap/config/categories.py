"""Stock category definitions for the Portland map."""

from ..core.categories import CategoryDefinition, CategoryRegistry, TagRule


def _rule(**conditions: str) -> TagRule:
    # Tag keys with ':' can't be kwargs; "__" stands in for ':'
    return TagRule(conditions={k.replace("__", ":"): v for k, v in conditions.items()})


def default_categories() -> CategoryRegistry:
    """The stock categories of the Portland map."""
    food_amenity = r"^(restaurant|cafe|fast_food|food_court)$"
    return CategoryRegistry(categories=(
        CategoryDefinition(
            id="vegan-restaurants", name="Vegan Restaurants", icon="🌱", color="#4CAF50",
            include=(_rule(diet__vegan=r"^(yes|only)$"), _rule(cuisine="vegan")),
        ),
        CategoryDefinition(
            id="vegan-friendly", name="Vegan-Friendly Restaurants", icon="🥗", color="#8BC34A",
            include=(
                _rule(diet__vegetarian=r"^yes$", amenity=food_amenity),
                _rule(diet__vegan__options=r"^yes$", amenity=food_amenity),
            ),
            exclude=(_rule(diet__vegan="."), _rule(cuisine="vegan")),
        ),
        CategoryDefinition(
            id="art-spaces", name="Art Spaces", icon="🎨", color="#E91E63",
            include=(
                _rule(amenity=r"^arts_centre$"),
                _rule(tourism=r"^gallery$"),
                _rule(craft="artist"),
                _rule(studio="art"),
            ),
        ),
        CategoryDefinition(
            id="creator-spaces", name="Creator Spaces", icon="🛠️", color="#FF9800",
            include=(
                _rule(shop="art|craft"),
                _rule(craft="."),
                _rule(amenity="maker|workshop"),
            ),
            exclude_names=(
                "auto parts", "truck parts", "automotive", "car parts",
                "autozone", "bi-mart", "bi mart", "target", "michael's", "michaels", "ross",
            ),
        ),
        CategoryDefinition(
            id="music-venues", name="Music Venues", icon="🎵", color="#9C27B0",
            include=(
                _rule(amenity=r"^music_venue$"),
                _rule(amenity=r"^(bar|nightclub)$", music="live"),
            ),
        ),
        CategoryDefinition(
            id="record-stores", name="Independent Record Stores", icon="💿", color="#673AB7",
            include=(_rule(shop=r"^music$"),),
        ),
        CategoryDefinition(
            id="bookstores", name="Independent Bookstores", icon="📚", color="#795548",
            include=(_rule(shop=r"^(books|bookstore)$"),),
        ),
        CategoryDefinition(
            id="gaming-comics", name="Gaming and Comics", icon="🎲", color="#3F51B5",
            include=(_rule(shop="game|comic"), _rule(leisure="game")),
        ),
        CategoryDefinition(
            id="vintage-shops", name="Vintage Shops", icon="👜", color="#FF5722",
            include=(
                _rule(shop="second_hand|vintage|antique"),
                _rule(second_hand=r"^yes$", shop=r"^(clothes|furniture)$"),
            ),
        ),
        CategoryDefinition(
            id="indie-coffee", name="Indie Coffee Shops", icon="☕", color="#8D6E63",
            include=(_rule(amenity=r"^cafe$"),),
            exclude_names=("starbucks", "dunkin", "peets", "tullys", "coffee bean"),
        ),
        CategoryDefinition(
            id="food-coops", name="Food Co-ops", icon="🥬", color="#689F38",
            include=(
                _rule(shop=r"^supermarket$", organic=r"^yes$"),
                _rule(shop=r"^supermarket$", cooperative=r"^yes$"),
                _rule(shop=r"^health_food$"),
            ),
        ),
        CategoryDefinition(
            id="theaters", name="Community Theaters", icon="🎭", color="#F44336",
            include=(_rule(amenity=r"^(theatre|cinema)$"),),
            exclude_names=("regal", "cinemark", "amc", "century"),
        ),
    ))
