"""Tests for setup and teardown driven by tree mutations."""


class TestInsertion:
    def test_inserted_nodes_are_set_up_on_delivery(self, make_runtime):
        runtime = make_runtime("<main></main>")
        runtime.document.query_selector("main").insert_adjacent_html("beforeend", '<p #let:n="3"></p>')
        paragraph = runtime.document.query_selector("p")
        assert runtime.scope_of(paragraph) is None
        runtime.document.flush()
        assert runtime.scope_of(paragraph).read("n") == 3

    def test_inserted_nodes_see_ancestor_scope(self, make_runtime):
        runtime = make_runtime('<main #let:name="\'Ada\'"></main>')
        main = runtime.document.query_selector("main")
        main.inner_html = '<section><b ::text="name"></b></section>'
        runtime.document.flush()
        assert runtime.document.query_selector("b").text_content == "Ada"
        runtime.scope_of(main).write("name", "Grace")
        assert runtime.document.query_selector("b").text_content == "Grace"

    def test_scope_chain_follows_tree(self, make_runtime):
        runtime = make_runtime("<div><span></span></div>")
        div = runtime.document.query_selector("div")
        span = runtime.document.query_selector("span")
        assert runtime.scope_of(span).parent is runtime.scope_of(div)
        assert runtime.scope_of(div).parent is runtime.scope_of(runtime.document.body)
        assert runtime.scope_of(runtime.document.body).parent is None


class TestRemoval:
    BODY = '<div #let:n="1"><span ::text="n"></span></div>'

    def test_removal_unsubscribes(self, make_runtime):
        runtime = make_runtime(self.BODY)
        div = runtime.document.query_selector("div")
        span = runtime.document.query_selector("span")
        signal = runtime.scope_of(div).signal("n")
        assert signal.listener_count == 1
        span.remove()
        runtime.document.flush()
        assert signal.listener_count == 0
        assert runtime.scope_of(span) is None

    def test_removed_subtree_is_torn_down(self, make_runtime):
        runtime = make_runtime(self.BODY)
        div = runtime.document.query_selector("div")
        span = runtime.document.query_selector("span")
        states = [runtime.state_of(div), runtime.state_of(span)]
        div.remove()
        runtime.document.flush()
        assert [state.alive for state in states] == [False, False]
        assert div not in runtime.states and span not in runtime.states

    def test_remove_and_readd_in_one_batch_keeps_bindings(self, make_runtime):
        runtime = make_runtime(self.BODY)
        div = runtime.document.query_selector("div")
        span = runtime.document.query_selector("span")
        before = runtime.state_of(span)
        span.remove()
        div.append_child(span)
        runtime.document.flush()
        assert runtime.state_of(span) is before
        assert runtime.scope_of(div).signal("n").listener_count == 1

    def test_moved_node_rebinds_to_new_parent(self, make_runtime):
        runtime = make_runtime(
            '<div id="a" #let:n="\'a\'"><span ::text="n"></span></div><div id="b" #let:n="\'b\'"></div>'
        )
        first = runtime.document.query_selector("#a")
        second = runtime.document.query_selector("#b")
        span = runtime.document.query_selector("span")
        assert span.text_content == "a"
        second.append_child(span)
        runtime.document.flush()
        assert span.text_content == "b"
        assert runtime.scope_of(first).signal("n").listener_count == 0
        assert runtime.scope_of(span).parent is runtime.scope_of(second)


class TestTeardownOrder:
    def test_innermost_first(self, make_runtime):
        runtime = make_runtime("<div><p><b></b></p></div>")
        order = []
        for tag in ("div", "p", "b"):
            node = runtime.document.query_selector(tag)
            runtime.state_of(node).cleanup.append(lambda tag=tag: order.append(tag))
        runtime.watcher.teardown(runtime.document.query_selector("div"))
        assert order == ["b", "p", "div"]
