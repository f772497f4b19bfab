from typing import List

from .schemas import Category, Product


def sample_categories() -> List[Category]:
    return [
        Category(id="fruits", name="Fruits & Vegetables", icon="🥦"),
        Category(id="dairy", name="Dairy & Bakery", icon="🥛"),
        Category(id="staples", name="Staples", icon="🌾"),
    ]


def sample_products() -> List[Product]:
    return [
        Product(id="p_banana", name="Banana", description="Fresh robusta bananas",
                price=45.0, original_price=50.0, category="fruits", unit="dozen",
                rating=4.3, discount=10),
        Product(id="p_tomato", name="Tomato", description="Farm fresh tomatoes",
                price=30.0, category="fruits", unit="kg", rating=4.1),
        Product(id="p_milk", name="Toned Milk", description="Pasteurized toned milk",
                price=27.0, category="dairy", unit="500 ml", rating=4.6),
        Product(id="p_bread", name="Whole Wheat Bread", description="Soft whole wheat loaf",
                price=40.0, original_price=45.0, category="dairy", unit="piece",
                rating=4.2, discount=11),
        Product(id="p_rice", name="Basmati Rice", description="Aged long grain basmati",
                price=600.0, original_price=720.0, category="staples", unit="5 kg",
                rating=4.5, discount=17),
        Product(id="p_atta", name="Whole Wheat Atta", description="Stone ground flour",
                price=250.0, category="staples", unit="5 kg", in_stock=False, rating=4.0),
    ]
