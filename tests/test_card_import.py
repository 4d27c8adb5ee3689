"""Tests for the card import service."""

from pathlib import Path

import httpx
import pytest
import respx
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from swucol.db.operations import insert_card
from swucol.models.card import ImportRow
from swucol.models.db import CardDB
from swucol.models.failure import EmptyInputError, MalformedInputError, StoreError
from swucol.parsers.card_csv import UTF8_BOM, parse_card_csv
from swucol.services.card_images import DownloadRateLimiter
from swucol.services.card_import import derive_mainboard, import_card_csv, import_cards

BASE_URL = "https://images.test/cards"

CHEWBACCA = "LAW,001,Chewbacca,Hero of Kessel,Character,Heroism,Normal,Rare,false,,Artist One,0,0"
LUKE = "LAW,002,Luke Skywalker,Jedi Knight,Character,Heroism,Normal,Rare,false,,Artist Two,5,10"
VADER_LEADER = "SOR,010,Darth Vader,Dark Lord of the Sith,Leader,Villainy,Normal,Common,false,,A,0,0"
MARINE = "SOR,095,Battlefield Marine,,Unit,Command,Normal,Common,false,,B,0,0"


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def run_import(session: AsyncSession, images_dir: Path, sleep: RecordingSleep):
    """Import CSV bytes with a shared client and a recording rate limiter."""

    async def run(data: bytes):
        async with httpx.AsyncClient() as client:
            return await import_cards(
                session,
                parse_card_csv(data),
                images_dir,
                BASE_URL,
                client=client,
                limiter=DownloadRateLimiter(interval=0.1, sleep=sleep),
            )

    return run


async def stored_cards(session: AsyncSession) -> list[CardDB]:
    result = await session.execute(select(CardDB).order_by(CardDB.id))
    return list(result.scalars().all())


def _row(card_type: str) -> ImportRow:
    return ImportRow(
        set="SOR", card_number="001", card_name="X", card_title="", card_type=card_type
    )


class TestDeriveMainboard:
    @pytest.mark.parametrize("card_type", ["Leader", "Base", "leader", " Base "])
    def test_leaders_and_bases_are_not_mainboard(self, card_type: str) -> None:
        assert derive_mainboard(_row(card_type)) is False

    @pytest.mark.parametrize("card_type", ["Unit", "Event", "Upgrade", "Character", ""])
    def test_everything_else_is_mainboard(self, card_type: str) -> None:
        assert derive_mainboard(_row(card_type)) is True


class TestImportCards:
    @respx.mock
    async def test_inserts_new_card_with_zero_owned(
        self, session: AsyncSession, make_csv, run_import, images_dir: Path
    ) -> None:
        """Owned Count from the CSV is ignored; new cards start at 0."""
        respx.get(f"{BASE_URL}/LAW/001.png").mock(return_value=httpx.Response(200, content=b"a"))
        respx.get(f"{BASE_URL}/LAW/002.png").mock(return_value=httpx.Response(200, content=b"b"))

        summary = await run_import(make_csv(CHEWBACCA, LUKE))

        cards = await stored_cards(session)
        assert [(c.name, c.owned) for c in cards] == [
            ("Chewbacca, Hero of Kessel", 0),
            ("Luke Skywalker, Jedi Knight", 0),
        ]
        assert cards[0].image_path == str(images_dir / "LAW001.png")
        assert summary.inserted == 2
        assert summary.images_downloaded == 2

    @respx.mock
    async def test_reimport_is_idempotent(
        self, session: AsyncSession, make_csv, run_import
    ) -> None:
        """Importing the same CSV twice stores each card once."""
        respx.get(f"{BASE_URL}/LAW/001.png").mock(return_value=httpx.Response(200, content=b"a"))
        data = make_csv(CHEWBACCA)

        await run_import(data)
        first = [(c.id, c.name, c.image_path, c.owned, c.mainboard) for c in await stored_cards(session)]
        summary = await run_import(data)
        second = [(c.id, c.name, c.image_path, c.owned, c.mainboard) for c in await stored_cards(session)]

        assert second == first
        assert len(second) == 1
        assert summary.inserted == 0
        assert summary.skipped_in_store == 1

    @respx.mock
    async def test_existing_card_is_not_overwritten(
        self, session: AsyncSession, make_csv, run_import
    ) -> None:
        existing = await insert_card(session, "Chewbacca, Hero of Kessel", mainboard=False)
        existing.owned = 3
        await session.commit()

        await run_import(make_csv(CHEWBACCA))

        cards = await stored_cards(session)
        assert len(cards) == 1
        assert cards[0].owned == 3
        assert cards[0].mainboard is False
        assert cards[0].image_path is None

    @respx.mock
    async def test_duplicate_in_batch_first_occurrence_wins(
        self, session: AsyncSession, make_csv, run_import, images_dir: Path
    ) -> None:
        """The first row's values are used; later duplicates are skipped."""
        first = "SOR,010,Darth Vader,Dark Lord of the Sith,Leader,Villainy,Normal,Common,false,,A,0,0"
        second = "SOR,999,Darth Vader,Dark Lord of the Sith,Unit,Villainy,Hyperspace,Rare,false,,A,0,0"
        route = respx.get(f"{BASE_URL}/SOR/010.png").mock(
            return_value=httpx.Response(200, content=b"a")
        )

        summary = await run_import(make_csv(first, second))

        cards = await stored_cards(session)
        assert len(cards) == 1
        assert cards[0].mainboard is False
        assert cards[0].image_path == str(images_dir / "SOR010.png")
        assert route.call_count == 1
        assert summary.inserted == 1
        assert summary.skipped_duplicate_in_batch == 1

    @respx.mock
    async def test_blank_title_uses_card_name(
        self, session: AsyncSession, make_csv, run_import
    ) -> None:
        respx.get(f"{BASE_URL}/SOR/095.png").mock(return_value=httpx.Response(200, content=b"a"))

        await run_import(make_csv(MARINE))

        cards = await stored_cards(session)
        assert cards[0].name == "Battlefield Marine"
        assert cards[0].mainboard is True

    @respx.mock
    async def test_leader_is_not_mainboard(
        self, session: AsyncSession, make_csv, run_import
    ) -> None:
        respx.get(f"{BASE_URL}/SOR/010.png").mock(return_value=httpx.Response(200, content=b"a"))

        await run_import(make_csv(VADER_LEADER))

        cards = await stored_cards(session)
        assert cards[0].mainboard is False

    async def test_cached_image_reused_without_network(
        self, session: AsyncSession, make_csv, run_import, images_dir: Path, sleep: RecordingSleep
    ) -> None:
        cached = images_dir / "LAW001.png"
        cached.write_bytes(b"already here")

        with respx.mock(assert_all_called=False) as router:
            route = router.get(f"{BASE_URL}/LAW/001.png").mock(
                return_value=httpx.Response(200, content=b"new")
            )
            summary = await run_import(make_csv(CHEWBACCA))

        assert not route.called
        assert cached.read_bytes() == b"already here"
        cards = await stored_cards(session)
        assert cards[0].image_path == str(cached)
        assert summary.images_cached == 1
        assert sleep.delays == []

    @respx.mock
    async def test_failed_download_still_inserts(
        self, session: AsyncSession, make_csv, run_import
    ) -> None:
        respx.get(f"{BASE_URL}/LAW/001.png").mock(return_value=httpx.Response(404))

        summary = await run_import(make_csv(CHEWBACCA))

        cards = await stored_cards(session)
        assert len(cards) == 1
        assert cards[0].name == "Chewbacca, Hero of Kessel"
        assert cards[0].image_path is None
        assert summary.images_unavailable == 1

    async def test_unrequestable_image_url_still_inserts(
        self, session: AsyncSession, make_csv, run_import
    ) -> None:
        """A control character in the card number degrades to no image."""
        row = "LAW,0\x0101,Chewbacca,,Unit,Heroism,Normal,Rare,false,,A,0,0"

        with respx.mock:
            summary = await run_import(make_csv(row))

        cards = await stored_cards(session)
        assert [(c.name, c.image_path) for c in cards] == [("Chewbacca", None)]
        assert summary.inserted == 1
        assert summary.images_unavailable == 1

    @respx.mock
    async def test_downloads_are_rate_limited(
        self, make_csv, run_import, images_dir: Path, sleep: RecordingSleep
    ) -> None:
        """Each download after the first waits; cache hits do not."""
        respx.get(f"{BASE_URL}/LAW/001.png").mock(return_value=httpx.Response(200, content=b"a"))
        respx.get(f"{BASE_URL}/SOR/010.png").mock(return_value=httpx.Response(200, content=b"c"))
        respx.get(f"{BASE_URL}/SOR/095.png").mock(return_value=httpx.Response(200, content=b"d"))
        (images_dir / "LAW002.png").write_bytes(b"cached")

        summary = await run_import(make_csv(CHEWBACCA, LUKE, VADER_LEADER, MARINE))

        assert summary.images_downloaded == 3
        assert summary.images_cached == 1
        assert sleep.delays == [0.1, 0.1]

    async def test_rate_budget_is_per_import(
        self,
        session: AsyncSession,
        make_csv,
        images_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A fresh limiter per call: the first download of each import does not wait."""
        sleep = RecordingSleep()
        monkeypatch.setattr(
            "swucol.services.card_images.DownloadRateLimiter",
            lambda: DownloadRateLimiter(interval=0.1, sleep=sleep),
        )

        with respx.mock:
            respx.get(f"{BASE_URL}/LAW/001.png").mock(return_value=httpx.Response(200, content=b"a"))
            respx.get(f"{BASE_URL}/LAW/002.png").mock(return_value=httpx.Response(200, content=b"b"))
            async with httpx.AsyncClient() as client:
                for row in (CHEWBACCA, LUKE):
                    await import_card_csv(
                        session,
                        make_csv(row),
                        images_dir=images_dir,
                        image_base_url=BASE_URL,
                        client=client,
                    )

        assert sleep.delays == []

    async def test_empty_rows_rejected(self, session: AsyncSession, images_dir: Path) -> None:
        with pytest.raises(EmptyInputError):
            await import_cards(session, [], images_dir, BASE_URL)

    async def test_store_error_aborts_batch_keeping_earlier_cards(
        self,
        session: AsyncSession,
        session_factory,
        make_csv,
        run_import,
        images_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        for name in ("LAW001.png", "LAW002.png", "SOR010.png"):
            (images_dir / name).write_bytes(b"cached")
        calls = 0

        async def flaky_insert(session, name, **kwargs):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise OperationalError("INSERT INTO cards", {}, Exception("disk I/O error"))
            return await insert_card(session, name, **kwargs)

        monkeypatch.setattr("swucol.services.card_import.insert_card", flaky_insert)

        with pytest.raises(StoreError):
            await run_import(make_csv(CHEWBACCA, LUKE, VADER_LEADER))

        async with session_factory() as fresh:
            names = [c.name for c in await stored_cards(fresh)]
        assert names == ["Chewbacca, Hero of Kessel"]

    async def test_insert_conflict_counts_as_stored(
        self,
        session: AsyncSession,
        make_csv,
        run_import,
        images_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A name stored between the existence check and the insert is not duplicated."""
        (images_dir / "LAW001.png").write_bytes(b"cached")
        await insert_card(session, "Chewbacca, Hero of Kessel")
        await session.commit()

        async def never_exists(_session, _name):
            return False

        monkeypatch.setattr("swucol.services.card_import.card_exists_by_name", never_exists)

        summary = await run_import(make_csv(CHEWBACCA))

        assert len(await stored_cards(session)) == 1
        assert summary.inserted == 0
        assert summary.skipped_in_store == 1


class TestImportCardCsv:
    async def test_scenario_single_card(
        self, session: AsyncSession, make_csv, images_dir: Path
    ) -> None:
        with respx.mock:
            respx.get(f"{BASE_URL}/LAW/001.png").mock(return_value=httpx.Response(200, content=b"a"))
            summary = await import_card_csv(
                session, make_csv(CHEWBACCA), images_dir=images_dir, image_base_url=BASE_URL
            )

        cards = await stored_cards(session)
        assert [(c.name, c.owned) for c in cards] == [("Chewbacca, Hero of Kessel", 0)]
        assert summary.inserted == 1

    async def test_follows_image_redirects(
        self, session: AsyncSession, make_csv, images_dir: Path
    ) -> None:
        moved = "https://cdn.images.test/LAW001.png"
        with respx.mock:
            respx.get(f"{BASE_URL}/LAW/001.png").mock(
                return_value=httpx.Response(301, headers={"Location": moved})
            )
            respx.get(moved).mock(return_value=httpx.Response(200, content=b"png"))
            summary = await import_card_csv(
                session, make_csv(CHEWBACCA), images_dir=images_dir, image_base_url=BASE_URL
            )

        cards = await stored_cards(session)
        assert cards[0].image_path == str(images_dir / "LAW001.png")
        assert summary.images_downloaded == 1

    async def test_bom_imports_identically(
        self, session: AsyncSession, make_csv, images_dir: Path
    ) -> None:
        (images_dir / "LAW001.png").write_bytes(b"cached")

        summary = await import_card_csv(
            session, UTF8_BOM + make_csv(CHEWBACCA), images_dir=images_dir, image_base_url=BASE_URL
        )

        cards = await stored_cards(session)
        assert [c.name for c in cards] == ["Chewbacca, Hero of Kessel"]
        assert summary.inserted == 1

    async def test_malformed_csv_writes_nothing(
        self, session: AsyncSession, make_csv, images_dir: Path
    ) -> None:
        """A bad row anywhere rejects the file before any insert."""
        (images_dir / "LAW001.png").write_bytes(b"cached")

        with pytest.raises(MalformedInputError):
            await import_card_csv(
                session,
                make_csv(CHEWBACCA, "LAW,002,Luke"),
                images_dir=images_dir,
                image_base_url=BASE_URL,
            )

        assert await stored_cards(session) == []

    async def test_header_only_is_empty_input(
        self, session: AsyncSession, make_csv, images_dir: Path
    ) -> None:
        with pytest.raises(EmptyInputError):
            await import_card_csv(session, make_csv(), images_dir=images_dir, image_base_url=BASE_URL)
