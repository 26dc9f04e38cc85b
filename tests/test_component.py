"""Tests for #component templates and their instances."""

from hyperscope.dom import Event

COUNTER = (
    '<template #component="x-counter" count="0" label="\'Count\'">'
    '<span ::text="${label}: ${count}"></span>'
    '<button @click="lambda e: (count := int(count) + 1)"></button>'
    "</template>"
)

LIFECYCLE = (
    '<template #component="x-life">'
    "<script>log = ['construct']</script>"
    "<script #onConnected>log.append('connect')</script>"
    "<script #onDisconnected>log.append('disconnect')</script>"
    "</template>"
)


def shadow_text(host, selector="span"):
    return host.shadow_root.query_selector(selector).text_content


class TestDefinition:
    def test_from_template(self, make_runtime):
        runtime = make_runtime(COUNTER + LIFECYCLE)
        counter = runtime.components["x-counter"]
        assert counter.observed_attributes == ["count", "label"]
        assert counter.default_attribute_expressions["label"] == "'Count'"
        life = runtime.components["x-life"]
        assert life.lifecycle_scripts == {
            "construct": ["log = ['construct']"],
            "connect": ["log.append('connect')"],
            "disconnect": ["log.append('disconnect')"],
        }

    def test_duplicate_template_is_ignored(self, make_runtime):
        runtime = make_runtime(COUNTER + COUNTER + "<x-counter></x-counter>")
        assert list(runtime.components) == ["x-counter"]
        assert shadow_text(runtime.document.query_selector("x-counter")) == "Count: 0"

    def test_hosts_before_definition_are_upgraded(self, make_runtime):
        runtime = make_runtime("<x-counter></x-counter>")
        host = runtime.document.query_selector("x-counter")
        assert host.shadow_root is None
        runtime.document.body.insert_adjacent_html("beforeend", COUNTER)
        runtime.document.flush()
        assert shadow_text(host) == "Count: 0"


class TestAttributes:
    def test_defaults_are_evaluated_and_reflected(self, make_runtime):
        runtime = make_runtime(COUNTER + "<x-counter></x-counter>")
        host = runtime.document.query_selector("x-counter")
        assert shadow_text(host) == "Count: 0"
        assert host.get_attribute("count") == "0"
        assert host.get_attribute("label") == "Count"

    def test_host_attribute_overrides_default(self, make_runtime):
        runtime = make_runtime(COUNTER + '<x-counter count="5"></x-counter>')
        host = runtime.document.query_selector("x-counter")
        assert shadow_text(host) == "Count: 5"

    def test_attribute_changes_flow_inward(self, make_runtime):
        runtime = make_runtime(COUNTER + "<x-counter></x-counter>")
        host = runtime.document.query_selector("x-counter")
        host.set_attribute("count", "9")
        assert shadow_text(host) == "Count: 9"

    def test_scope_changes_do_not_flow_outward(self, make_runtime):
        runtime = make_runtime(COUNTER + "<x-counter></x-counter>")
        host = runtime.document.query_selector("x-counter")
        host.shadow_root.query_selector("button").dispatch_event(Event("click"))
        assert shadow_text(host) == "Count: 1"
        assert host.get_attribute("count") == "0"


class TestIsolation:
    def test_outer_variables_are_invisible(self, make_runtime):
        runtime = make_runtime(
            '<template #component="x-show"><span ::text="${secret}"></span></template>'
            '<div #let:secret="\'s\'"><x-show></x-show></div>'
        )
        assert shadow_text(runtime.document.query_selector("x-show")) == ""

    def test_instances_do_not_share_state(self, make_runtime):
        runtime = make_runtime(COUNTER + '<x-counter id="a"></x-counter><x-counter id="b"></x-counter>')
        first = runtime.document.query_selector("#a")
        second = runtime.document.query_selector("#b")
        first.shadow_root.query_selector("button").dispatch_event(Event("click"))
        assert shadow_text(first) == "Count: 1"
        assert shadow_text(second) == "Count: 0"

    def test_template_directives_apply_to_host(self, make_runtime):
        runtime = make_runtime(
            '<template #component="x-clicker" clicks="0" @click="lambda e: (clicks := clicks + 1)"></template>'
            "<x-clicker></x-clicker>"
        )
        host = runtime.document.query_selector("x-clicker")
        host.dispatch_event(Event("click"))
        assert runtime.scope_of(host.shadow_root).read("clicks") == 1


class TestLifecycle:
    def test_scripts_run_in_order(self, make_runtime):
        runtime = make_runtime(LIFECYCLE + "<x-life></x-life>")
        host = runtime.document.query_selector("x-life")
        instance = host._instance
        scope = runtime.scope_of(host.shadow_root)
        log = scope.read("log")
        assert log == ["construct", "connect"]
        assert instance.phase == "connected"
        host.remove()
        assert log == ["construct", "connect", "disconnect"]
        assert instance.phase == "disconnected"

    def test_disconnect_unsubscribes(self, make_runtime):
        runtime = make_runtime(COUNTER + "<x-counter></x-counter>")
        host = runtime.document.query_selector("x-counter")
        signal = runtime.scope_of(host.shadow_root).signal("count")
        assert signal.listener_count == 1
        assert runtime.instances[host] is host._instance
        host.remove()
        runtime.document.flush()
        assert signal.listener_count == 0
        assert host not in runtime.instances
        assert runtime.scope_of(host.shadow_root) is None

    def test_reconnect_rebuilds_scope(self, make_runtime):
        runtime = make_runtime(LIFECYCLE + "<x-life></x-life>")
        host = runtime.document.query_selector("x-life")
        first = runtime.scope_of(host.shadow_root)
        host.remove()
        runtime.document.flush()
        runtime.document.body.append_child(host)
        runtime.document.flush()
        second = runtime.scope_of(host.shadow_root)
        assert second is not first
        assert second.read("log") == ["construct", "connect"]

    def test_reconnect_rebinds_shadow(self, make_runtime):
        runtime = make_runtime(COUNTER + '<x-counter count="3"></x-counter>')
        host = runtime.document.query_selector("x-counter")
        host.remove()
        runtime.document.body.append_child(host)
        runtime.document.flush()
        host.set_attribute("count", "4")
        assert shadow_text(host) == "Count: 4"
        assert runtime.scope_of(host.shadow_root).signal("count").listener_count == 1
