from bmw_scrapper.grid import (
    UNKNOWN_BODY_TYPE,
    enumerate_grid,
    find_body_type,
    model_name_from_text,
    read_card,
)
from bmw_scrapper.items import GridUnit
from bmw_scrapper.selectors import UX

from fakes import FakeElement, FakeLocator, FakePage


class GridPage(FakePage):
    def __init__(self, cards):
        super().__init__("https://www.bmw.co.uk/en/all-models.html")
        self.cards = cards

    def query(self, selector):
        return list(self.cards) if selector == UX.ALL_MODEL_CARD else []


def card(order, text):
    return FakeElement(text=text, attrs={} if order is None else {"data-counter": str(order)})


def test_body_type_vocabulary():
    assert find_body_type("The new BMW 4 Series Gran Coupe") == "Gran Coupé"
    assert find_body_type("M4 Coupe") == "Coupé"
    assert find_body_type("X5 | suv") == "SUV"
    assert find_body_type("Touring estate") == "Touring"
    assert find_body_type("Roadster") == ""
    assert find_body_type("Subaru") == ""


def test_model_name_skips_tags_prices_and_electric():
    text = "New\nElectric\nSUV\nFrom £56,000\niX1\nMore details"
    assert model_name_from_text(text) == "iX1"
    assert model_name_from_text("\n  \nM Model\n") == ""


def test_grid_unit_key_ignores_case_spaces_and_hyphens():
    assert GridUnit(1, "X5 M-Sport", "SUV").key == GridUnit(9, "x5m sport", "suv").key
    assert GridUnit(1, "X5", "SUV").key != GridUnit(1, "X5", "Touring").key


async def test_read_card_falls_back_to_card_text():
    page = GridPage([])
    element = card(3, "New\nBMW i5 Touring\nFrom £67,000")
    unit = await read_card(FakeLocator(page, lambda: [element]))
    assert unit == GridUnit(order=3, model_name="BMW i5 Touring", body_type="Touring")


async def test_read_card_defaults_unknown_body_type():
    page = GridPage([])
    element = card(1, "Z4")
    unit = await read_card(FakeLocator(page, lambda: [element]))
    assert unit.body_type == UNKNOWN_BODY_TYPE


async def test_read_card_requires_integer_order():
    page = GridPage([])
    assert await read_card(FakeLocator(page, lambda: [card(None, "X1\nSUV")])) is None
    bad = FakeElement(text="X1\nSUV", attrs={"data-counter": "first"})
    assert await read_card(FakeLocator(page, lambda: [bad])) is None


async def test_enumerate_grid_sorts_and_drops_hidden_and_nameless():
    hidden = card(0, "X7\nSUV")
    hidden.visible = False
    cards = [
        card(5, "M4\nCoupe"),
        card(2, "X3\nSUV"),
        hidden,
        card(4, "From £30,000"),
    ]
    page = GridPage(cards)

    units = await enumerate_grid(page)

    assert units == [GridUnit(2, "X3", "SUV"), GridUnit(5, "M4", "Coupé")]
