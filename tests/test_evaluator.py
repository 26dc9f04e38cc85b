"""Tests for the scoped evaluator."""

import pytest

from hyperscope import Environment, ExpressionError, Scope, evaluate, execute, render_template
from hyperscope.evaluator import evaluate_arguments, is_template


def env_with(**values):
    scope = Scope()
    for name, value in values.items():
        scope.write(name, value)
    return Environment(scope)


class TestExpressions:
    def test_arithmetic_and_names(self):
        env = env_with(a=2, b=3)
        assert evaluate("a * b + 1", env) == 7

    def test_containers_and_comprehensions(self):
        env = env_with(items=[1, 2, 3])
        assert evaluate("[x * 2 for x in items if x > 1]", env) == [4, 6]
        assert evaluate("{x: x ** 2 for x in items}", env) == {1: 1, 2: 4, 3: 9}
        assert evaluate("sum(x for x in items)", env) == 6
        assert evaluate("(*items, 4)", env) == (1, 2, 3, 4)
        assert evaluate("{**{'a': 1}, 'b': 2}", env) == {"a": 1, "b": 2}

    def test_boolean_short_circuit(self):
        env = env_with(flag=False)
        assert evaluate("flag and missing.attr", env) is False
        assert evaluate("flag or 'fallback'", env) == "fallback"

    def test_chained_comparison_and_ifexp(self):
        env = env_with(n=5)
        assert evaluate("1 < n <= 5", env) is True
        assert evaluate("'big' if n > 3 else 'small'", env) == "big"

    def test_subscripts_slices_and_calls(self):
        env = env_with(word="hyperscope")
        assert evaluate("word[:5].upper()", env) == "HYPER"
        assert evaluate("len(word)", env) == 10
        assert evaluate("'-'.join(sorted(set(word))[:3])", env) == "c-e-h"

    def test_fstring(self):
        env = env_with(price=3.5)
        assert evaluate("f'{price:.2f} {price!r}'", env) == "3.50 3.5"

    def test_unknown_name_is_none(self):
        env = env_with()
        assert evaluate("nothing", env) is None
        assert env.scope.exists("nothing")

    def test_empty_expression(self):
        assert evaluate("   ", env_with()) is None

    def test_walrus_writes_scope(self):
        env = env_with(count=1)
        assert evaluate("(count := count + 1)", env) == 2
        assert env.scope.read("count") == 2

    def test_lambda_with_defaults(self):
        env = env_with(base=10)
        add = evaluate("lambda x, y=1: base + x + y", env)
        assert add(5) == 16
        assert add(5, y=0) == 15

    def test_lambda_writes_scope(self):
        env = env_with(clicks=0)
        handler = evaluate("lambda e: (clicks := clicks + e)", env)
        handler(2)
        handler(3)
        assert env.scope.read("clicks") == 5

    def test_scope_shadows_builtins(self):
        env = env_with(len=lambda value: -1)
        assert evaluate("len('abc')", env) == -1

    def test_globals(self):
        env = Environment(Scope(), globals={"double": lambda v: v * 2})
        assert evaluate("double(4)", env) == 8

    def test_extra_arguments(self):
        env = env_with(x=1)
        assert evaluate("x + e", env, e=41) == 42


class TestFixedIdentifiers:
    def test_this_is_scope(self):
        env = env_with(a=1)
        assert evaluate("this", env) is env.scope
        evaluate("this.write('b', 2)", env)
        assert env.scope.read("b") == 2

    def test_this_attribute_access(self):
        env = env_with(count=1)
        assert evaluate("(lambda e: this.count)(None)", env) == 1
        execute("this.count += 1", env)
        assert env.scope.read("count") == 2

    def test_old(self):
        env = env_with(a=1)
        env.scope.write("a", 2)
        assert evaluate("old['a']", env) == 1
        assert evaluate("old.a", env) == 1

    def test_element_and_component(self):
        env = Environment(Scope(), node="node", component="host")
        assert evaluate("element", env) == "node"
        assert evaluate("component", env) == "host"


class TestScripts:
    def test_assignments_write_scope(self):
        env = env_with(count=1)
        execute("count = count * 10\nlabel = f'n={count}'", env)
        assert env.scope.read("count") == 10
        assert env.scope.read("label") == "n=10"

    def test_augmented_assignment(self):
        env = env_with(total=1, data={"k": 1})
        execute("total += 4\ndata['k'] *= 3", env)
        assert env.scope.read("total") == 5
        assert env.scope.read("data") == {"k": 3}

    def test_indented_script(self):
        env = env_with()
        execute(
            """
            greeting = 'hi'
            if greeting:
                greeting = greeting + '!'
            """,
            env,
        )
        assert env.scope.read("greeting") == "hi!"

    def test_loop_variables_stay_local(self):
        env = env_with(items=[1, 2, 3], total=0)
        execute("for item in items:\n    if item == 2:\n        continue\n    total += item", env)
        assert env.scope.read("total") == 4
        assert "item" not in env.scope.signals

    def test_while_and_break(self):
        env = env_with(n=0)
        execute("while True:\n    n += 1\n    if n >= 3:\n        break", env)
        assert env.scope.read("n") == 3

    def test_def_is_published_to_scope(self):
        env = env_with(count=0)
        execute(
            "def bump(step=1):\n"
            "    for _ in range(step):\n"
            "        count += 1\n"
            "    return count\n",
            env,
        )
        bump = env.scope.read("bump")
        assert bump(2) == 2
        assert env.scope.read("count") == 2

    def test_tuple_unpacking(self):
        env = env_with(pair=(1, 2))
        execute("a, b = pair", env)
        assert (env.scope.read("a"), env.scope.read("b")) == (1, 2)

    def test_top_level_return_stops_script(self):
        env = env_with()
        execute("x = 1\nreturn\nx = 2", env)
        assert env.scope.read("x") == 1


class TestErrors:
    def test_unsupported_syntax(self):
        with pytest.raises(ExpressionError):
            execute("import os", env_with())
        with pytest.raises(ExpressionError):
            execute("del thing", env_with())

    def test_syntax_error_propagates(self):
        with pytest.raises(SyntaxError):
            evaluate("1 +", env_with())

    def test_runtime_error_propagates(self):
        with pytest.raises(ZeroDivisionError):
            evaluate("1 / 0", env_with())

    def test_unpack_mismatch(self):
        with pytest.raises(ValueError):
            execute("a, b = [1, 2, 3]", env_with())


class TestTemplates:
    def test_is_template(self):
        assert is_template("Hello ${name}")
        assert not is_template("name")
        assert not is_template("${}")

    def test_render(self):
        env = env_with(name="Ada", n=3)
        assert render_template("Hi ${name}, ${n * 2} items", env) == "Hi Ada, 6 items"

    def test_none_renders_empty(self):
        assert render_template("[${missing}]", env_with()) == "[]"


class TestArguments:
    def test_positional_and_keyword(self):
        env = env_with(q="cats")
        args, kwargs = evaluate_arguments("'/search', {'method': 'POST'}, params={'q': q}", env)
        assert args == ["/search", {"method": "POST"}]
        assert kwargs == {"params": {"q": "cats"}}
