import asyncio

from django.test import SimpleTestCase
from lxml import etree

from badge.sync import IDLE, SCHEDULED, BadgeSync, CountUnavailable, MutationRecord, Page, SyncConfig
from badge.sync.render import find_badges


FAST = SyncConfig(debounce=0.05, stepper_settle=0.15, fetch_settle=0.2, remove_settle=0.3)

NAV = '<nav><a href="/">Home</a><a href="/cart/">Cart</a></nav>'

BLOCK_CART = (
    '<div class="wc-block-cart">'
    '<div class="wc-block-cart-items"><span class="qty">1</span></div>'
    '<div class="wc-block-cart__totals">Total</div>'
    '<p class="note">hello</p>'
    '</div>'
)

CONTROLS = (
    '<input name="quantity" value="1">'
    '<a class="remove" href="#">x</a>'
    '<button class="wc-block-components-quantity-selector__button"><span>+</span></button>'
    '<button class="other">?</button>'
)


class FakeClient:
    def __init__(self, counts=(1,), error=None):
        self.counts = list(counts)
        self.error = error
        self.calls = 0

    async def get_count(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.counts[min(self.calls, len(self.counts)) - 1]


def make_page(body="", transport=None):
    return Page.from_html(f"<html><body>{NAV}{body}</body></html>", transport=transport)


async def settle(sync, seconds=0.12):
    await asyncio.sleep(seconds)
    await sync.drain()


class BadgeSyncTests(SimpleTestCase):
    async def test_start_schedules_initial_update(self):
        page = make_page()
        client = FakeClient(counts=[2])
        sync = BadgeSync(page, client, FAST)
        sync.start()
        self.assertEqual(sync.state, SCHEDULED)
        await settle(sync)
        self.assertEqual(sync.state, IDLE)
        self.assertEqual(client.calls, 1)
        badges = find_badges(page.document)
        self.assertEqual(len(badges), 1)
        self.assertEqual(badges[0].text, "2")
        sync.stop()

    async def test_burst_of_triggers_makes_one_call(self):
        page = make_page()
        client = FakeClient()
        sync = BadgeSync(page, client, FAST)
        sync.start()
        for name in ("added_to_cart", "updated_cart_totals", "added_to_cart", "removed_from_cart", "wc_cart_loaded"):
            page.trigger(name)
            await asyncio.sleep(0.01)
        await settle(sync)
        self.assertEqual(client.calls, 1)
        sync.stop()

    async def test_spaced_triggers_each_make_a_call(self):
        page = make_page()
        client = FakeClient()
        sync = BadgeSync(page, client, FAST)
        sync.start()
        await settle(sync)
        for _ in range(3):
            page.trigger("added_to_cart")
            await settle(sync)
        self.assertEqual(client.calls, 4)
        sync.stop()

    async def test_updated_event_carries_count(self):
        page = make_page()
        seen = []
        page.on("cart_badge_updated", seen.append)
        sync = BadgeSync(page, FakeClient(counts=[3, 0]), FAST)
        sync.start()
        await settle(sync)
        page.trigger("removed_from_cart")
        await settle(sync)
        self.assertEqual(seen, [3, 0])
        self.assertEqual(find_badges(page.document), [])
        sync.stop()

    async def test_failed_query_leaves_badge_untouched(self):
        page = Page.from_html(
            '<html><body><a href="/cart/">Cart '
            '<span class="uk-badge cart-quantity-badge" data-cart-count="3">3</span></a></body></html>'
        )
        client = FakeClient(error=CountUnavailable("endpoint refused (HTTP 403)"))
        sync = BadgeSync(page, client, FAST)
        with self.assertLogs("badge.sync.loop", level="WARNING"):
            sync.start()
            await settle(sync)
        self.assertEqual(sync.state, IDLE)
        badges = find_badges(page.document)
        self.assertEqual(len(badges), 1)
        self.assertEqual(badges[0].get("data-cart-count"), "3")
        # no automatic retry
        await asyncio.sleep(0.1)
        self.assertEqual(client.calls, 1)
        sync.stop()

    async def test_unexpected_client_error_is_logged(self):
        page = make_page()
        sync = BadgeSync(page, FakeClient(error=RuntimeError("boom")), FAST)
        with self.assertLogs("badge.sync.loop", level="ERROR"):
            sync.start()
            await settle(sync)
        self.assertEqual(sync.state, IDLE)
        sync.stop()

    async def test_cart_api_fetch_schedules_after_settle_delay(self):
        async def transport(url, **kwargs):
            return {"ok": True}

        page = make_page(transport=transport)
        client = FakeClient()
        sync = BadgeSync(page, client, FAST)
        sync.start()
        await settle(sync)
        await page.fetch("/wp-json/wc/store/v1/cart/update-item", method="POST")
        self.assertEqual(sync.state, SCHEDULED)
        await asyncio.sleep(0.1)
        self.assertEqual(client.calls, 1)
        await settle(sync, 0.2)
        self.assertEqual(client.calls, 2)
        sync.stop()

    async def test_other_fetches_are_ignored(self):
        async def transport(url, **kwargs):
            return {"ok": True}

        page = make_page(transport=transport)
        client = FakeClient()
        sync = BadgeSync(page, client, FAST)
        sync.start()
        await settle(sync)
        await page.fetch("/api/products/?page=2")
        self.assertEqual(sync.state, IDLE)
        sync.stop()

    async def test_failed_fetch_does_not_schedule(self):
        async def transport(url, **kwargs):
            raise ConnectionError("offline")

        page = make_page(transport=transport)
        sync = BadgeSync(page, FakeClient(), FAST)
        sync.start()
        await settle(sync)
        with self.assertRaises(ConnectionError):
            await page.fetch("/wp-json/wc/store/v1/cart")
        self.assertEqual(sync.state, IDLE)
        sync.stop()

    async def test_relevant_mutations_schedule_update(self):
        page = make_page(BLOCK_CART)
        sync = BadgeSync(page, FakeClient(), FAST)
        sync.start()
        await settle(sync)

        totals = page.select(".wc-block-cart__totals")[0]
        page.record_mutations([MutationRecord("attributes", totals, "class")])
        self.assertEqual(sync.state, SCHEDULED)
        await settle(sync)

        qty = page.select(".qty")[0]
        page.record_mutations([MutationRecord("characterData", qty)])
        self.assertEqual(sync.state, SCHEDULED)
        await settle(sync)

        note = page.select(".note")[0]
        note.text = "Now $1,234.50"
        page.record_mutations([MutationRecord("characterData", note)])
        self.assertEqual(sync.state, SCHEDULED)
        await settle(sync)
        sync.stop()

    async def test_noise_mutations_are_ignored(self):
        page = make_page(BLOCK_CART + '<div class="outside">$5.00</div>')
        sync = BadgeSync(page, FakeClient(), FAST)
        sync.start()
        await settle(sync)

        note = page.select(".note")[0]
        page.record_mutations([MutationRecord("characterData", note)])
        self.assertEqual(sync.state, IDLE)

        totals = page.select(".wc-block-cart__totals")[0]
        page.record_mutations([MutationRecord("attributes", totals, "style")])
        self.assertEqual(sync.state, IDLE)

        outside = page.select(".outside")[0]
        page.record_mutations([MutationRecord("childList", outside)])
        self.assertEqual(sync.state, IDLE)
        sync.stop()

    async def test_containers_added_after_start_are_not_observed(self):
        page = make_page()
        sync = BadgeSync(page, FakeClient(), FAST)
        sync.start()
        await settle(sync)
        body = page.document.find("body")
        late = etree.SubElement(body, "div")
        late.set("class", "wc-block-cart")
        totals = etree.SubElement(late, "div")
        totals.set("class", "wc-block-cart__totals")
        page.record_mutations([MutationRecord("attributes", totals, "class")])
        self.assertEqual(sync.state, IDLE)
        sync.stop()

    async def test_quantity_input_uses_base_debounce(self):
        page = make_page(CONTROLS)
        client = FakeClient()
        sync = BadgeSync(page, client, FAST)
        sync.start()
        await settle(sync)
        field = page.select('input[name="quantity"]')[0]
        page.dispatch("input", field)
        page.dispatch("change", field)
        self.assertEqual(sync.state, SCHEDULED)
        await settle(sync)
        self.assertEqual(client.calls, 2)
        sync.stop()

    async def test_remove_click_waits_for_settle_delay(self):
        page = make_page(CONTROLS)
        client = FakeClient()
        sync = BadgeSync(page, client, FAST)
        sync.start()
        await settle(sync)
        page.dispatch("click", page.select(".remove")[0])
        await asyncio.sleep(0.15)
        self.assertEqual(client.calls, 1)
        self.assertEqual(sync.state, SCHEDULED)
        await settle(sync, 0.25)
        self.assertEqual(client.calls, 2)
        sync.stop()

    async def test_stepper_click_bubbles_from_inner_span(self):
        page = make_page(CONTROLS)
        client = FakeClient()
        sync = BadgeSync(page, client, FAST)
        sync.start()
        await settle(sync)
        inner = page.select(".wc-block-components-quantity-selector__button span")[0]
        page.dispatch("click", inner)
        await asyncio.sleep(0.08)
        self.assertEqual(client.calls, 1)
        await settle(sync, 0.15)
        self.assertEqual(client.calls, 2)
        sync.stop()

    async def test_unrelated_click_is_ignored(self):
        page = make_page(CONTROLS)
        sync = BadgeSync(page, FakeClient(), FAST)
        sync.start()
        await settle(sync)
        page.dispatch("click", page.select(".other")[0])
        self.assertEqual(sync.state, IDLE)
        sync.stop()

    async def test_stop_cancels_pending_update_and_listeners(self):
        page = make_page(CONTROLS)
        client = FakeClient()
        sync = BadgeSync(page, client, FAST)
        sync.start()
        sync.stop()
        self.assertEqual(sync.state, IDLE)
        page.trigger("added_to_cart")
        page.dispatch("click", page.select(".remove")[0])
        await asyncio.sleep(0.1)
        self.assertEqual(client.calls, 0)

    async def test_for_page_reads_embedded_config(self):
        page = Page.from_html(
            "<html><body>"
            '<script id="cart-badge-config" type="application/json">'
            '{"ajaxurl": "/api/cart-badge/count/", "nonce": "tok", "action": "get_cart_quantity"}'
            "</script></body></html>"
        )
        sync = BadgeSync.for_page(page, base_url="http://shop.test")
        self.assertEqual(sync.client.url, "http://shop.test/api/cart-badge/count/")
        self.assertEqual(sync.client.nonce, "tok")
        self.assertEqual(sync.config.badge_class, "uk-badge cart-quantity-badge")

    async def test_for_page_creates_badges_with_embedded_class(self):
        page = Page.from_html(
            '<html><body><nav><a href="/cart/">Cart</a></nav>'
            '<script id="cart-badge-config" type="application/json">'
            '{"ajaxurl": "/c/", "nonce": "tok", "badge_class": "pill cart-quantity-badge"}'
            "</script></body></html>"
        )
        sync = BadgeSync.for_page(page)
        sync.client = FakeClient(counts=[2])
        await sync.update()
        self.assertEqual(find_badges(page.document)[0].get("class"), "pill cart-quantity-badge")
