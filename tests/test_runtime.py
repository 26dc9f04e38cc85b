"""Tests for the Runtime facade."""

import logging

from hyperscope import Runtime, Scope
from hyperscope.dom import Document, Event


class TestRuntime:
    def test_start_sets_up_body(self, make_runtime):
        runtime = make_runtime('<div #let:n="1"></div>')
        assert isinstance(runtime.scope_of(runtime.document.body), Scope)
        assert runtime.scope_of(runtime.document.query_selector("div")).read("n") == 1

    def test_stop_tears_everything_down(self, make_runtime):
        runtime = make_runtime('<div #let:n="1"><span ::text="n"></span></div>')
        signal = runtime.scope_of(runtime.document.query_selector("div")).signal("n")
        runtime.stop()
        assert runtime.states == {}
        assert signal.listener_count == 0
        runtime.document.body.insert_adjacent_html("beforeend", "<p></p>")
        runtime.document.flush()
        assert runtime.states == {}

    def test_stop_disconnects_components(self, make_runtime):
        runtime = make_runtime(
            '<template #component="x-counter" count="0"><span ::text="${count}"></span></template>'
            "<x-counter></x-counter>"
        )
        host = runtime.document.query_selector("x-counter")
        shadow = host.shadow_root
        signal = runtime.scope_of(shadow).signal("count")
        assert signal.listener_count == 1
        runtime.stop()
        assert runtime.states == {}
        assert runtime.instances == {}
        assert signal.listener_count == 0
        assert host._instance.phase == "disconnected"
        shadow.insert_adjacent_html("beforeend", '<p #let:n="1"></p>')
        runtime.document.flush()
        assert runtime.states == {}

    def test_custom_globals(self, scheduler, transport, stores):
        document = Document('<div #let:greeting="greet(\'Ada\')"></div>')
        runtime = Runtime(
            document,
            scheduler=scheduler,
            transport=transport,
            stores=stores,
            globals={"greet": lambda name: f"Hello, {name}"},
        )
        runtime.start()
        assert runtime.scope_of(document.query_selector("div")).read("greeting") == "Hello, Ada"

    def test_console_is_global(self, make_runtime, caplog):
        runtime = make_runtime('<button @click="lambda e: console.log(\'clicked\', e.type)"></button>')
        with caplog.at_level(logging.INFO, logger="hyperscope.console"):
            runtime.document.query_selector("button").dispatch_event(Event("click"))
        assert "clicked click" in caplog.text

    def test_element_identifier(self, make_runtime):
        runtime = make_runtime('<input id="name" #let:tag="element.tag + \'#\' + element.id">')
        assert runtime.scope_of(runtime.document.query_selector("input")).read("tag") == "input#name"

    def test_document_with_scheduler_delivers_mutations(self, scheduler, transport, stores):
        document = Document("<main></main>", scheduler=scheduler)
        runtime = Runtime(document, scheduler=scheduler, transport=transport, stores=stores)
        runtime.start()
        document.body.insert_adjacent_html("beforeend", '<p #let:n="2"></p>')
        scheduler.run_pending()
        assert runtime.scope_of(document.query_selector("p")).read("n") == 2
