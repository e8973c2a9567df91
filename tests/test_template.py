import io
import re
from unittest import TestCase

import vela
from vela import DictLoader, RenderOptions, Template


class TemplateTestCase(TestCase):
    def assertRaisesExecutionError(self, exctype, func, *args, **kwargs):
        try:
            func(*args, **kwargs)
            self.fail("Expected TemplateExecutionError wrapping %s" % (exctype,))
        except vela.TemplateExecutionError as e:
            self.assertEqual(exctype, type(e.__cause__))

    def test_parser_returns_input_when_there_is_nothing_to_substitute(self):
        template = Template("<html></html>")
        self.assertEqual("<html></html>", template.merge({}))

    def test_parser_substitutes_string_added_to_the_context(self):
        template = Template("Hello $name")
        self.assertEqual("Hello Chris", template.merge({"name": "Chris"}))

    def test_dollar_left_untouched(self):
        template = Template("Hello $ ")
        self.assertEqual("Hello $ ", template.merge({}))
        template = Template("Hello $")
        self.assertEqual("Hello $", template.merge({}))

    def test_unmatched_name_does_not_get_substituted(self):
        template = Template("Hello $name")
        self.assertEqual("Hello $name", template.merge({}))

    def test_silent_substitution_for_unmatched_values(self):
        template = Template("Hello $!name")
        self.assertEqual("Hello world", template.merge({"name": "world"}))
        self.assertEqual("Hello ", template.merge({}))

    def test_formal_reference_in_an_if_condition(self):
        template = Template("#if(${a.b.c})yes!#end")
        self.assertEqual("yes!", template.merge({"a": {"b": {"c": "d"}}}))
        self.assertEqual("", template.merge({}))

    def test_silent_formal_reference_in_an_if_condition(self):
        template = Template("#if($!{a.b.c})yes!#end")
        self.assertEqual("yes!", template.merge({"a": {"b": {"c": "d"}}}))
        self.assertEqual("", template.merge({}))
        template = Template("#if($!a.b.c)yes!#end")
        self.assertEqual("yes!", template.merge({"a": {"b": {"c": "d"}}}))
        self.assertEqual("", template.merge({}))

    def test_reference_function_calls_in_if_conditions(self):
        template = Template("#if(${a.b.c('cheese')})yes!#end")
        self.assertEqual(
            "yes!", template.merge({"a": {"b": {"c": lambda x: "hello %s" % x}}})
        )
        self.assertEqual("", template.merge({"a": {"b": {"c": lambda x: None}}}))
        self.assertEqual("", template.merge({}))

    def test_embed_substitution_value_in_braces_gets_handled(self):
        template = Template("Hello ${name}.")
        self.assertEqual("Hello World.", template.merge({"name": "World"}))

    def test_unmatched_braces_raises_exception(self):
        template = Template("Hello ${name.")
        self.assertRaises(vela.TemplateSyntaxError, template.merge, {})

    def test_unmatched_trailing_brace_preserved(self):
        template = Template("Hello $name}.")
        self.assertEqual("Hello World}.", template.merge({"name": "World"}))

    def test_formal_reference_with_alternate_literal_value(self):
        template = Template("${a|'hello'}")
        self.assertEqual("foo", template.merge({"a": "foo"}))
        self.assertEqual("hello", template.merge({}))

    def test_formal_reference_with_alternate_expression_value(self):
        template = Template("${a|$b}")
        self.assertEqual("hello", template.merge({"b": "hello"}))

    def test_can_return_value_from_an_attribute_of_a_context_object(self):
        template = Template("Hello $name.first_name")

        class MyObj:
            pass

        o = MyObj()
        o.first_name = "Chris"
        self.assertEqual("Hello Chris", template.merge({"name": o}))

    def test_can_return_value_from_a_method_of_a_context_object(self):
        template = Template("Hello $name.first_name()")

        class MyObj:
            def first_name(self):
                return "Chris"

        self.assertEqual("Hello Chris", template.merge({"name": MyObj()}))

    def test_bean_style_getters_answer_property_access(self):
        class Person:
            def getName(self):
                return "Chris"

            def isActive(self):
                return True

        template = Template("$p.name #if($p.active)active#end")
        self.assertEqual("Chris active", template.merge({"p": Person()}))

    def test_when_if_statement_resolves_to_true_the_content_is_returned(self):
        template = Template("Hello #if ($name)your name is ${name}#end Good to see you")
        self.assertEqual(
            "Hello your name is Steve Good to see you",
            template.merge({"name": "Steve"}),
        )

    def test_when_if_statement_is_nested_inside_a_successful_enclosing_if_it_gets_evaluated(
        self,
    ):
        template = Template(
            "Hello #if ($show_greeting)your name is ${name}.#if ($is_birthday) Happy Birthday.#end#end Good to see you"
        )
        namespace = {"name": "Steve", "show_greeting": False}
        self.assertEqual("Hello  Good to see you", template.merge(namespace))
        namespace["show_greeting"] = True
        self.assertEqual(
            "Hello your name is Steve. Good to see you", template.merge(namespace)
        )
        namespace["is_birthday"] = True
        self.assertEqual(
            "Hello your name is Steve. Happy Birthday. Good to see you",
            template.merge(namespace),
        )

    def test_if_statement_considers_None_to_be_false(self):
        template = Template("#if ($some_value)hide me#end")
        self.assertEqual("", template.merge({}))
        self.assertEqual("", template.merge({"some_value": None}))

    def test_if_statement_honours_custom_truth_value_of_objects(self):
        class BooleanValue(object):
            def __init__(self, value):
                self.value = value

            def __bool__(self):
                return self.value

        template = Template("#if ($v)yes#end")
        self.assertEqual("", template.merge({"v": BooleanValue(False)}))
        self.assertEqual("yes", template.merge({"v": BooleanValue(True)}))

    def test_understands_boolean_literals(self):
        self.assertEqual("true", Template("#set ($v = true)$v").merge({}))
        self.assertEqual("false", Template("#set ($v = false)$v").merge({}))

    def test_new_lines_in_templates_are_permitted(self):
        template = Template(
            "hello #if ($show_greeting)${name}.\n#if($is_birthday)Happy Birthday\n#end.\n#{end}Off out later?"
        )
        namespace = {"name": "Steve", "show_greeting": True, "is_birthday": True}
        self.assertEqual(
            "hello Steve.\nHappy Birthday\n.\nOff out later?", template.merge(namespace)
        )

    def test_foreach_with_plain_content_loops_correctly(self):
        template = Template("#foreach ($name in $names)Hello you. #end")
        self.assertEqual(
            "Hello you. Hello you. ", template.merge({"names": ["Chris", "Steve"]})
        )

    def test_foreach_skipped_when_nested_in_a_failing_if(self):
        template = Template(
            "#if ($false_value)#foreach ($name in $names)Hello you. #end#end"
        )
        self.assertEqual(
            "", template.merge({"false_value": False, "names": ["Chris", "Steve"]})
        )

    def test_foreach_makes_loop_variable_accessible(self):
        template = Template("#foreach ($name in $names)Hello $name. #end")
        self.assertEqual(
            "Hello Chris. Hello Steve. ", template.merge({"names": ["Chris", "Steve"]})
        )

    def test_loop_variable_not_accessible_after_loop(self):
        template = Template("#foreach ($name in $names)Hello $name. #end$name")
        self.assertEqual(
            "Hello Chris. Hello Steve. $name",
            template.merge({"names": ["Chris", "Steve"]}),
        )

    def test_loop_variables_do_not_clash_in_nested_loops(self):
        template = Template(
            "#foreach ($word in $greetings)$word to#foreach ($word in $names) $word#end. #end"
        )
        namespace = {"greetings": ["Hello", "Goodbye"], "names": ["Chris", "Steve"]}
        self.assertEqual(
            "Hello to Chris Steve. Goodbye to Chris Steve. ", template.merge(namespace)
        )

    def test_loop_counter_variable_available_in_loops(self):
        template = Template("#foreach ($word in $greetings)$velocityCount,#end")
        self.assertEqual("1,2,", template.merge({"greetings": ["Hello", "Goodbye"]}))
        template = Template("#foreach ($word in $greetings)$foreach.count,#end")
        self.assertEqual("1,2,", template.merge({"greetings": ["Hello", "Goodbye"]}))

    def test_loop_index_variable_available_in_loops(self):
        template = Template("#foreach ($word in $greetings)$foreach.index,#end")
        self.assertEqual("0,1,", template.merge({"greetings": ["Hello", "Goodbye"]}))

    def test_loop_counter_variables_do_not_clash_in_nested_loops(self):
        template = Template(
            "#foreach ($word in $greetings)Outer $foreach.count#foreach ($word in $names), inner $foreach.count#end. #end"
        )
        namespace = {"greetings": ["Hello", "Goodbye"], "names": ["Chris", "Steve"]}
        self.assertEqual(
            "Outer 1, inner 1, inner 2. Outer 2, inner 1, inner 2. ",
            template.merge(namespace),
        )

    def test_has_next(self):
        template = Template(
            "#foreach ($i in [1, 2, 3])$i. #if ($velocityHasNext)yes#end, #end"
        )
        self.assertEqual("1. yes, 2. yes, 3. , ", template.merge({}))
        template = Template(
            "#foreach ($i in [1, 2, 3])$i. #if ($foreach.hasNext)yes#end, #end"
        )
        self.assertEqual("1. yes, 2. yes, 3. , ", template.merge({}))

    def test_first_and_last(self):
        template = Template("#foreach ($i in [1, 2, 3])$i. #if ($foreach.first)yes#end, #end")
        self.assertEqual("1. yes, 2. , 3. , ", template.merge({}))
        template = Template("#foreach ($i in [1, 2, 3])$i. #if ($foreach.last)yes#end, #end")
        self.assertEqual("1. , 2. , 3. yes, ", template.merge({}))

    def test_foreach_parent_refers_to_enclosing_loop(self):
        template = Template(
            "#foreach ($a in [1, 2])#foreach ($b in [1])$foreach.parent.count#end#end"
        )
        self.assertEqual("12", template.merge({}))

    def test_foreach_stop_method_ends_the_loop(self):
        template = Template("#foreach ($i in [1..5])$i#if ($i == 2)$foreach.stop()#end#end")
        self.assertEqual("12", template.merge({}))

    def test_foreach_else_branch_runs_for_empty_iterable(self):
        template = Template("#foreach ($i in $items)$i#{else}none#end")
        self.assertEqual("none", template.merge({"items": []}))
        self.assertEqual("12", template.merge({"items": [1, 2]}))

    def test_foreach_over_a_map_iterates_its_values(self):
        template = Template("#foreach ($v in $map)$v,#end")
        self.assertEqual("1,2,", template.merge({"map": {"a": 1, "b": 2}}))

    def test_can_use_an_integer_variable_defined_in_template(self):
        template = Template("#set ($value = 10)$value")
        self.assertEqual("10", template.merge({}))

    def test_passed_in_namespace_not_modified_by_set(self):
        template = Template("#set ($value = 10)$value")
        namespace = {}
        template.merge(namespace)
        self.assertEqual({}, namespace)

    def test_template_cannot_modify_its_args(self):
        template = Template("#set($foo = 1)$foo")
        ns = {"foo": 2}
        self.assertEqual("1", template.merge(ns))
        self.assertEqual(2, ns["foo"])

    def test_can_use_a_string_variable_defined_in_template(self):
        self.assertEqual("Steve", Template('#set ($value = "Steve")$value').merge({}))
        self.assertEqual("Steve", Template("#set ($value = 'Steve')$value").merge({}))

    def test_single_line_comments_skipped(self):
        template = Template("## comment\nStuff\nMore stuff## more comments $blah")
        self.assertEqual("Stuff\nMore stuff", template.merge({}))

    def test_multi_line_comments_skipped(self):
        template = Template("Stuff#*\n more comments *# and more stuff")
        self.assertEqual("Stuff and more stuff", template.merge({}))

    def test_unparsed_content_is_emitted_verbatim(self):
        template = Template("#[[$name #if($x)]]# $name")
        self.assertEqual("$name #if($x) Chris", template.merge({"name": "Chris"}))

    def test_merge_to_stream(self):
        template = Template("Hello $name!")
        output = io.StringIO()
        template.merge_to({"name": "Chris"}, output)
        self.assertEqual("Hello Chris!", output.getvalue())

    def test_string_literal_can_contain_embedded_escaped_newlines(self):
        template = Template('#set ($name = "\\\\batman\\nand robin")$name')
        self.assertEqual("\\batman\nand robin", template.merge({}))

    def test_string_literal_with_inner_double_quotes(self):
        template = Template("#set($d = '{\"a\": 2}')$d")
        self.assertEqual('{"a": 2}', template.merge({}))

    def test_string_interpolation_with_inner_double_double_quotes(self):
        template = Template('#set($d = "{""a"": 2}")$d')
        self.assertEqual('{"a": 2}', template.merge({}))

    def test_string_interpolation_with_multiple_double_quotes(self):
        template = Template(r'#set($d = "1\\""2""3")$d')
        self.assertEqual(r'1\"2"3', template.merge({}))

    def test_else_block_evaluated_when_if_expression_false(self):
        template = Template("#if ($value) true #else false #end")
        self.assertEqual(" false ", template.merge({}))

    def test_curly_else(self):
        template = Template("#if($value)true#{else}false#end")
        self.assertEqual("false", template.merge({}))

    def test_curly_end(self):
        template = Template("#if($value)true#{end}monkey")
        self.assertEqual("monkey", template.merge({}))

    def test_too_many_end_clauses_trigger_error(self):
        template = Template("#if (1)true!#end #end ")
        self.assertRaises(vela.TemplateSyntaxError, template.merge, {})

    def test_missing_end_clause_triggers_error(self):
        template = Template("#if (1)true!")
        self.assertRaises(vela.TemplateSyntaxError, template.merge, {})

    def test_can_call_method_with_parameters(self):
        class Calculator:
            def squared(self, number):
                return number * number

            def multiply(self, number1, number2):
                return number1 * number2

        calc = Calculator()
        self.assertEqual("64", Template("$calc.squared(8)").merge({"calc": calc}))
        self.assertEqual(
            "1296",
            Template("$calc.squared($calc.squared($v))").merge({"calc": calc, "v": 6}),
        )
        self.assertEqual("8", Template("$calc.multiply( 2 , 4 )").merge({"calc": calc}))

    def test_extract_array_index_from_method_result(self):
        class Source:
            def get_array(self):
                return ["p1", ["p2", "p3"]]

        self.assertEqual("p1", Template("$s.get_array()[0]").merge({"s": Source()}))
        self.assertEqual("p3", Template("$s.get_array()[1][1]").merge({"s": Source()}))

    def test_velocity_style_escaping(self):
        template = Template(
            r"""
#set( $email = "foo" )
$email
\$email
\\$email
\
\\ \# \$
\#end
\# end
\#set( $email = "foo" )
"""
        )
        self.assertEqual(
            r"""
foo
$email
\foo
\
\\ \# \$
#end
\# end
#set( foo = "foo" )
""",
            template.merge({}),
        )

    def test_escaped_reference_to_undefined_variable_is_echoed(self):
        template = Template(r"\$email \\$email")
        self.assertEqual(r"\$email \\$email", template.merge({}))

    def test_true_elseif_evaluated_when_if_is_false(self):
        template = Template("#if ($value1) one #elseif ($value2) two #end")
        self.assertEqual(" two ", template.merge({"value1": False, "value2": True}))

    def test_false_elseif_skipped_when_if_is_true(self):
        template = Template("#if ($value1) one #elseif ($value2) two #end")
        self.assertEqual(" one ", template.merge({"value1": True, "value2": False}))

    def test_first_true_elseif_evaluated_when_if_is_false(self):
        template = Template(
            "#if ($value1) one #elseif ($value2) two #elseif($value3) three #end"
        )
        namespace = {"value1": False, "value2": True, "value3": True}
        self.assertEqual(" two ", template.merge(namespace))

    def test_illegal_to_have_elseif_after_else(self):
        template = Template("#if ($value1) one #else two #elseif($value3) three #end")
        self.assertRaises(vela.TemplateSyntaxError, template.merge, {})

    def test_else_evaluated_when_if_and_elseif_are_false(self):
        template = Template("#if ($value1) one #elseif ($value2) two #else three #end")
        self.assertEqual(" three ", template.merge({"value1": False, "value2": False}))

    def test_syntax_error_contains_line_and_column_pos(self):
        try:
            Template("#if ( $hello )\n\n#elseif blah").merge({})
        except vela.TemplateSyntaxError as e:
            self.assertEqual((3, 9), (e.line, e.column))
        else:
            self.fail("expected error")
        try:
            Template("#else blah").merge({})
        except vela.TemplateSyntaxError as e:
            self.assertEqual((1, 1), (e.line, e.column))
        else:
            self.fail("expected error")

    def test_get_position_strings_in_syntax_error(self):
        try:
            Template("#else whatever").merge({})
        except vela.TemplateSyntaxError as e:
            self.assertEqual(["#else whatever", "^"], e.get_position_strings())
        else:
            self.fail("expected error")

    def test_get_position_strings_in_syntax_error_when_newline_after_error(self):
        try:
            Template("#else whatever\n").merge({})
        except vela.TemplateSyntaxError as e:
            self.assertEqual(["#else whatever", "^"], e.get_position_strings())
        else:
            self.fail("expected error")

    def test_get_position_strings_in_syntax_error_when_newline_before_error(self):
        try:
            Template("foobar\n  #else whatever\n").merge({})
        except vela.TemplateSyntaxError as e:
            self.assertEqual(["  #else whatever", "  ^"], e.get_position_strings())
        else:
            self.fail("expected error")

    def test_compare_greater_than_operator(self):
        for operator in [">", "gt"]:
            template = Template("#if ( $value %s 1 )yes#end" % operator)
            self.assertEqual("", template.merge({"value": 0}))
            self.assertEqual("", template.merge({"value": 1}))
            self.assertEqual("yes", template.merge({"value": 2}))

    def test_compare_greater_than_or_equal_operator(self):
        for operator in [">=", "ge"]:
            template = Template("#if ( $value %s 1 )yes#end" % operator)
            self.assertEqual("", template.merge({"value": 0}))
            self.assertEqual("yes", template.merge({"value": 1}))
            self.assertEqual("yes", template.merge({"value": 2}))

    def test_compare_less_than_operator(self):
        for operator in ["<", "lt"]:
            template = Template("#if ( $value %s 1 )yes#end" % operator)
            self.assertEqual("yes", template.merge({"value": 0}))
            self.assertEqual("", template.merge({"value": 1}))
            self.assertEqual("", template.merge({"value": 2}))

    def test_compare_less_than_or_equal_operator(self):
        for operator in ["<=", "le"]:
            template = Template("#if ( $value %s 1 )yes#end" % operator)
            self.assertEqual("yes", template.merge({"value": 0}))
            self.assertEqual("yes", template.merge({"value": 1}))
            self.assertEqual("", template.merge({"value": 2}))

    def test_compare_equality_operator(self):
        for operator in ["==", "eq"]:
            template = Template("#if ( $value %s 1 )yes#end" % operator)
            self.assertEqual("", template.merge({"value": 0}))
            self.assertEqual("yes", template.merge({"value": 1}))
            self.assertEqual("", template.merge({"value": 2}))

    def test_equality_coerces_numeric_strings(self):
        template = Template("#if ( $value == 1 )yes#end")
        self.assertEqual("yes", template.merge({"value": "1"}))

    def test_or_operator(self):
        for operator in ["||", "or"]:
            template = Template("#if ( $value1 %s $value2 )yes#end" % operator)
            self.assertEqual("", template.merge({"value1": False, "value2": False}))
            self.assertEqual("yes", template.merge({"value1": True, "value2": False}))
            self.assertEqual("yes", template.merge({"value1": False, "value2": True}))

    def test_and_operator(self):
        for operator in ["&&", "and"]:
            template = Template("#if ( $value1 %s $value2 )yes#end" % operator)
            self.assertEqual("", template.merge({"value1": False, "value2": False}))
            self.assertEqual("", template.merge({"value1": True, "value2": False}))
            self.assertEqual("", template.merge({"value1": False, "value2": True}))
            self.assertEqual("yes", template.merge({"value1": True, "value2": True}))

    def test_and_operator_considers_not_None_values_true(self):
        class SomeClass:
            pass

        template = Template("#if ( $value1 && $value2 )yes#end")
        self.assertEqual("", template.merge({"value1": None, "value2": None}))
        self.assertEqual("yes", template.merge({"value1": SomeClass(), "value2": True}))

    def test_parenthesised_value(self):
        template = Template("#if ( ($value1 == 1) && ($value2 == 2) )yes#end")
        self.assertEqual("", template.merge({"value1": 0, "value2": 1}))
        self.assertEqual("yes", template.merge({"value1": 1, "value2": 2}))

    def test_multiterm_expression(self):
        template = Template("#if ( $value1 == 1 && $value2 == 2 )yes#end")
        self.assertEqual("", template.merge({"value1": 1, "value2": 1}))
        self.assertEqual("yes", template.merge({"value1": 1, "value2": 2}))

    def test_logical_negation_operator(self):
        for operator in ["!", "not "]:
            template = Template("#if ( %s$value )yes#end" % operator)
            self.assertEqual("yes", template.merge({"value": False}))
            self.assertEqual("yes", template.merge({"value": None}))
            self.assertEqual("", template.merge({"value": True}))

    def test_compound_binary_and_unary_operators(self):
        template = Template("#if ( !$value1 && !$value2 )yes#end")
        self.assertEqual("", template.merge({"value1": False, "value2": True}))
        self.assertEqual("yes", template.merge({"value1": False, "value2": False}))

    def test_ternary_operator(self):
        template = Template("#set($v = $flag ? 'on' : 'off')$v")
        self.assertEqual("on", template.merge({"flag": True}))
        self.assertEqual("off", template.merge({"flag": False}))

    def test_cannot_define_macro_to_override_reserved_statements(self):
        for reserved in (
            "if",
            "else",
            "elseif",
            "set",
            "macro",
            "foreach",
            "parse",
            "include",
            "stop",
            "end",
            "define",
        ):
            template = Template("#macro ( %s $value) $value #end" % reserved)
            self.assertRaises(vela.TemplateSyntaxError, template.merge, {})

    def test_call_to_undefined_macro_is_echoed(self):
        template = Template("#undefined()")
        self.assertEqual("#undefined()", template.merge({}))

    def test_define_and_use_macro_with_no_parameters(self):
        template = Template("#macro ( hello)hi#end#hello ()#hello()")
        self.assertEqual("hihi", template.merge({"text": "hello"}))

    def test_define_and_use_macro_with_one_parameter(self):
        template = Template("#macro ( bold $value)<strong>$value</strong>#end#bold ($text)")
        self.assertEqual("<strong>hello</strong>", template.merge({"text": "hello"}))

    def test_define_and_use_macro_with_two_parameters_no_comma(self):
        template = Template(
            "#macro ( bold $value $other)<strong>$value</strong>$other#end#bold ($text $monkey)"
        )
        self.assertEqual(
            "<strong>hello</strong>cheese",
            template.merge({"text": "hello", "monkey": "cheese"}),
        )

    def test_define_and_use_macro_with_two_parameters_with_comma(self):
        template = Template(
            "#macro ( bold $value, $other)<strong>$value</strong>$other#end#bold ($text, $monkey)"
        )
        self.assertEqual(
            "<strong>hello</strong>cheese",
            template.merge({"text": "hello", "monkey": "cheese"}),
        )

    def test_use_of_macro_name_is_case_insensitive(self):
        template = Template("#macro ( bold $value)<strong>$value</strong>#end#BoLd ($text)")
        self.assertEqual("<strong>hello</strong>", template.merge({"text": "hello"}))

    def test_macro_arguments_are_combined_inline(self):
        template = Template(
            "#macro (addition $value1 $value2 )$value1+$value2#end#addition( $one   $two )"
        )
        self.assertEqual("ONETWO", template.merge({"one": "ONE", "two": "TWO"}))
        self.assertEqual("3", template.merge({"one": 1, "two": 2}))

    def test_missing_macro_argument_is_undefined(self):
        template = Template("#macro (pair $a $b)$a:$!b#end#pair('x')")
        self.assertEqual("x:", template.merge({}))

    def test_first_macro_definition_wins(self):
        template = Template("#macro ( hello)hi#end#macro(hello)again#end#hello()")
        self.assertEqual("hi", template.merge({}))

    def test_macro_can_be_replaced_when_allowed(self):
        template = Template(
            "#macro ( hello)hi#end#macro(hello)again#end#hello()",
            options=RenderOptions(macro_replace_allowed=True),
        )
        self.assertEqual("again", template.merge({}))

    def test_macro_can_be_called_before_its_definition(self):
        template = Template("#later()#macro(later)done#end")
        self.assertEqual("done", template.merge({}))

    def test_can_call_macro_with_newline_between_args(self):
        template = Template(
            "#macro (hello $value1 $value2 )hello $value1 and $value2#end\n#hello (1,\n 2)"
        )
        self.assertEqual("\nhello 1 and 2", template.merge({}))

    def test_macro_local_variables_are_not_available_after_the_call(self):
        template = Template("#macro(tryme $values)$values#end#tryme(1)$values")
        self.assertEqual("1$values", template.merge({}))

    def test_recursive_macro(self):
        template = Template(
            "#macro ( recur $number)#if ($number > 0)#set($number = $number - 1)#recur($number)X#end#end#recur(5)"
        )
        self.assertEqual("XXXXX", template.merge({}))

    def test_runaway_macro_recursion_is_cut_off(self):
        template = Template(
            "#macro(down $n)$n,#down($n)#end#down(1)",
            options=RenderOptions(max_macro_depth=3),
        )
        self.assertEqual("1,1,1,", template.merge({}))

    def test_include_directive_gives_error_if_no_loader_provided(self):
        template = Template('#include ("foo.tmpl")')
        self.assertRaises(vela.LoaderError, template.merge, {})

    def test_include_directive_yields_loader_error_if_included_content_not_found(self):
        class BrokenLoader:
            def resolve(self, name):
                raise IOError(name)

        template = Template('#include ("foo.tmpl")')
        try:
            template.merge({}, loader=BrokenLoader())
        except vela.LoaderError as e:
            self.assertEqual("foo.tmpl", e.name)
            self.assertIsInstance(e.__cause__, IOError)
        else:
            self.fail("expected error")

    def test_valid_include_directive_include_content(self):
        loader = DictLoader({"foo.tmpl": "howdy $name"})
        template = Template('Message is: #include ("foo.tmpl")!')
        self.assertEqual(
            "Message is: howdy $name!", template.merge({"name": "x"}, loader=loader)
        )

    def test_parse_directive_gives_error_if_no_loader_provided(self):
        template = Template('#parse ("foo.tmpl")')
        self.assertRaises(vela.LoaderError, template.merge, {})

    def test_valid_parse_directive_outputs_parsed_content(self):
        loader = DictLoader({"foo.tmpl": "$message"})
        template = Template('Message is: #parse ("foo.tmpl")!')
        self.assertEqual(
            "Message is: hola!", template.merge({"message": "hola"}, loader=loader)
        )
        template = Template("Message is: #parse ($foo)!")
        self.assertEqual(
            "Message is: hola!",
            template.merge({"foo": "foo.tmpl", "message": "hola"}, loader=loader),
        )

    def test_valid_parse_directive_merge_namespace(self):
        loader = DictLoader({"foo.tmpl": "#set($message = 'hola')"})
        template = Template('#parse("foo.tmpl")Message is: $message!')
        self.assertEqual("Message is: hola!", template.merge({}, loader=loader))

    def test_can_define_macros_in_parsed_files(self):
        loader = DictLoader({"foo.tmpl": "#macro(themacro)works#end"})
        template = Template('#parse("foo.tmpl")#themacro()')
        self.assertEqual("works", template.merge({}, loader=loader))

    def test_missing_parse_target_is_skipped_when_loading_is_lenient(self):
        template = Template(
            'a#parse("nope.tmpl")b', options=RenderOptions(strict_loading=False)
        )
        self.assertEqual("ab", template.merge({}, loader=DictLoader()))

    def test_assign_range_literal(self):
        template = Template("#set($values = [1..5])#foreach($value in $values)$value,#end")
        self.assertEqual("1,2,3,4,5,", template.merge({}))
        template = Template("#set($values = [2..-2])#foreach($value in $values)$value,#end")
        self.assertEqual("2,1,0,-1,-2,", template.merge({}))

    def test_ranges_over_references(self):
        template = Template(
            "#set($start = 1)#set($end = 5)#foreach($i in [$start .. $end])$i-#end"
        )
        self.assertEqual("1-2-3-4-5-", template.merge({}))

    def test_can_loop_over_numeric_ranges(self):
        template = Template("#foreach( $v in [1..5] )$v\n#end")
        self.assertEqual("1\n2\n3\n4\n5\n", template.merge({}))

    def test_array_literal(self):
        template = Template(
            '#set($values = ["Hello ", $person, ", your lucky number is ", 7])#foreach($value in $values)$value#end'
        )
        self.assertEqual(
            "Hello Chris, your lucky number is 7", template.merge({"person": "Chris"})
        )

    def test_dictionary_literal(self):
        template = Template('#set($a = {"dog": "cat" , "horse":15})$a.dog')
        self.assertEqual("cat", template.merge({}))
        template = Template('#set($a = {"dog": "$horse"})$a.dog')
        self.assertEqual("cow", template.merge({"horse": "cow"}))

    def test_dictionary_literal_as_parameter(self):
        class Kitchen:
            def cook(self, order):
                return order["color"] + " food"

        template = Template('$k.cook({"color":"blue"})')
        self.assertEqual("blue food", template.merge({"k": Kitchen()}))

    def test_nested_array_literals(self):
        template = Template(
            '#set($values = [["Hello ", "Steve"], ["Hello", " Chris"]])#foreach($pair in $values)#foreach($word in $pair)$word#end. #end'
        )
        self.assertEqual("Hello Steve. Hello Chris. ", template.merge({}))

    def test_parse_empty_dictionary(self):
        self.assertEqual("{}", Template("#set($a = {})$a").merge({}))

    def test_collections_render_in_java_style(self):
        template = Template("$list $map")
        self.assertEqual(
            "[1, true] {a=b}", template.merge({"list": [1, True], "map": {"a": "b"}})
        )

    def test_when_object_does_not_contain_referenced_attribute_no_substitution_occurs(
        self,
    ):
        class MyObject:
            pass

        template = Template(" $user.name ")
        self.assertEqual(" $user.name ", template.merge({"user": MyObject()}))

    def test_when_dictionary_has_same_key_as_built_in_method(self):
        template = Template(" $user.items ")
        self.assertEqual(" 1;2;3 ", template.merge({"user": {"items": "1;2;3"}}))

    def test_variables_expanded_in_double_quoted_strings(self):
        template = Template('#set($hello="hello, $name is my name")$hello')
        self.assertEqual("hello, Steve is my name", template.merge({"name": "Steve"}))

    def test_escaped_variable_references_not_expanded_in_double_quoted_strings(self):
        template = Template('#set($hello="hello, \\$name is my name")$hello')
        self.assertEqual("hello, $name is my name", template.merge({"name": "Steve"}))

    def test_single_quoted_strings_are_not_interpolated(self):
        template = Template("#set($hello='hello, $name')$hello")
        self.assertEqual("hello, $name", template.merge({"name": "Steve"}))

    def test_macros_expanded_in_double_quoted_strings(self):
        template = Template(
            '#macro(hi $person)$person says hello#end#set($hello="#hi($name)")$hello'
        )
        self.assertEqual("Steve says hello", template.merge({"name": "Steve"}))

    def test_color_spec(self):
        template = Template('<span style="color: #13ff93">')
        self.assertEqual('<span style="color: #13ff93">', template.merge({}))

    def test_standalone_hashes(self):
        self.assertEqual("#", Template("#").merge({}))
        self.assertEqual('"#"', Template('"#"').merge({}))
        self.assertEqual('<a href="#">bob</a>', Template('<a href="#">bob</a>').merge({}))

    def test_large_areas_of_text_handled_without_error(self):
        text = "qwerty uiop asdfgh jkl zxcvbnm. 1234" * 300
        template = Template(text)
        self.assertEqual(text, template.merge({}))

    def test_foreach_with_unset_variable_expands_to_nothing(self):
        template = Template("#foreach($value in $values)foo#end")
        self.assertEqual("", template.merge({}))

    def test_foreach_with_non_iterable_variable_expands_to_nothing(self):
        template = Template("#foreach($value in $values)foo#end")
        self.assertEqual("", template.merge({"values": 1}))

    def test_correct_scope_for_parameters_of_method_calls(self):
        template = Template("$obj.get_self().method($param)")

        class C:
            def get_self(self):
                return self

            def method(self, p):
                if p == "bat":
                    return "monkey"

        self.assertEqual("monkey", template.merge({"obj": C(), "param": "bat"}))

    def test_preserves_unicode_strings(self):
        template = Template("$value")
        self.assertEqual("Grüße", template.merge({"value": "Grüße"}))

    def test_preserves_unicode_strings_objects(self):
        class Clazz:
            def __init__(self, value):
                self.value = value

            def __str__(self):
                return self.value

        template = Template("$value")
        self.assertEqual("£12,000", template.merge({"value": Clazz("£12,000")}))

    def test_modulus_operator(self):
        template = Template("#set( $modulus = ($value % 2) )$modulus")
        self.assertEqual("1", template.merge({"value": 3}))

    def test_can_assign_empty_string(self):
        template = Template("#set( $v = \"\" )#set( $y = '' ).$v.$y.")
        self.assertEqual("...", template.merge({}))

    def test_stop_directive(self):
        template = Template("hello #stop world")
        self.assertEqual("hello ", template.merge({}))

    def test_stop_directive_inside_a_loop_ends_the_render(self):
        template = Template("#foreach($i in [1..3])$i#if($i == 2)#stop#end#end after")
        self.assertEqual("12", template.merge({}))

    def test_assignment_of_parenthesized_math_expression(self):
        self.assertEqual("9", Template("#set($a = (5 + 4))$a").merge({}))
        self.assertEqual("9", Template("#set($b = 5)#set($a = ($b + 4))$a").merge({}))

    def test_addition_has_higher_precedence_than_comparison(self):
        self.assertEqual("false", Template("#set($a = 4 > 2 + 5)$a").merge({}))
        self.assertEqual("true", Template("#set($a = 5 + 4 > 2)$a").merge({}))
        self.assertEqual("true", Template("#set($a = (5 + 4) > 2)$a").merge({}))

    def test_multiplication_has_higher_precedence_than_addition(self):
        self.assertEqual("18", Template("#set($a = 5 * 4 - 2)$a").merge({}))
        self.assertEqual("22", Template("#set($a = 2 + 5 * 4)$a").merge({}))

    def test_expressions_with_numbers_with_fractions(self):
        self.assertEqual("2.0", Template("#set($a = 100.0 / 50)$a").merge({}))

    def test_integer_division_and_division_by_zero(self):
        self.assertEqual("2", Template("#set($a = 6 / 3)$a").merge({}))
        self.assertEqual("3.5", Template("#set($a = 7 / 2)$a").merge({}))
        self.assertEqual("0", Template("#set($a = 7 / 0)$a").merge({}))
        self.assertEqual("0", Template("#set($a = 7 % 0)$a").merge({}))

    def test_macro_whitespace_and_newlines_ignored(self):
        template = Template(
            """#macro ( blah )
hello##
#end
#blah()"""
        )
        self.assertEqual("hello", template.merge({}))

    def test_if_whitespace_and_newlines_ignored(self):
        template = Template(
            """#if(true)
hello##
#end"""
        )
        self.assertEqual("hello", template.merge({}))

    def test_subobject_assignment(self):
        template = Template("#set($outer.inner = 'monkey')")
        x = {"outer": {}}
        template.merge(x)
        self.assertEqual("monkey", x["outer"]["inner"])

    def test_index_assignment(self):
        template = Template("#set($items[1] = 'b')$items")
        self.assertEqual("[a, b]", template.merge({"items": ["a", "x"]}))

    def test_multiline_arguments_to_function_calls(self):
        class Thing:
            def func(self, arg):
                return "y"

        template = Template(
            """$x.func("multi
line")"""
        )
        self.assertEqual("y", template.merge({"x": Thing()}))

    def test_does_not_accept_dollar_digit_identifiers(self):
        template = Template("$Something$0")
        self.assertEqual("$Something$0", template.merge({"0": "bar"}))

    def test_valid_vtl_identifiers(self):
        template = Template("$_x $a $A")
        self.assertEqual("bar z Z", template.merge({"_x": "bar", "a": "z", "A": "Z"}))

    def test_array_notation_int_index(self):
        self.assertEqual("bar", Template("$a[1]").merge({"a": ["foo", "bar"]}))

    def test_array_notation_nested_indexes(self):
        template = Template("$a[1][1]")
        self.assertEqual("bar2", template.merge({"a": ["foo", ["bar1", "bar2"]]}))

    def test_array_notation_dot(self):
        template = Template("$a[1].bar1")
        self.assertEqual("bar2", template.merge({"a": ["foo", {"bar1": "bar2"}]}))

    def test_array_notation_dict_index(self):
        self.assertEqual("bar", Template('$a["foo"]').merge({"a": {"foo": "bar"}}))

    def test_array_notation_empty_array_variable(self):
        self.assertEqual("", Template("$!a[1]").merge({"a": []}))

    def test_array_notation_variable_index(self):
        template = Template("#set($i = 1)$a[ $i ]")
        self.assertEqual("bar", template.merge({"a": ["foo", "bar"]}))

    def test_array_notation_invalid_index(self):
        template = Template('#set($i = "baz")$a[$i] and $!a[$i]')
        self.assertEqual("$a[$i] and ", template.merge({"a": ["foo", "bar"]}))

    def test_provides_helpful_error_location(self):
        class Exploding:
            def explode(self):
                raise ValueError("boom")

        template = Template("xx $obj.explode() yy", filename="mytemplate")
        try:
            template.merge({"obj": Exploding()})
            self.fail("expected exception")
        except vela.TemplateExecutionError as e:
            self.assertEqual("mytemplate", e.filename)
            self.assertEqual(3, e.start)
            self.assertEqual(17, e.end)
            self.assertTrue(isinstance(e.__cause__, ValueError))

    def test_set_inside_foreach_is_local_to_the_iteration(self):
        template = Template(
            "#set($var = 1)#foreach ($i in $items)$var,#set($var = $i)#end$var"
        )
        self.assertEqual("1,1,1,1", template.merge({"items": [2, 3, 4]}))

    def test_no_assignment_to_outer_var_if_same_varname_in_block(self):
        template = Template(
            "#set($i = 1)$i," "#foreach ($i in [2, 3, 4])$i,#set($i = $i)#end" "$i"
        )
        self.assertEqual("1,2,3,4,1", template.merge({}))

    def test_nested_foreach_vars_are_scoped(self):
        template = Template(
            "#foreach ($j in [1,2])"
            "#foreach ($i in [3, 4])$foreach.count,#end"
            "$foreach.count|#end"
        )
        self.assertEqual("1,2,1|1,2,2|", template.merge({}))

    def test_doesnt_blow_stack(self):
        template = Template(
            """
#foreach($i in [1..$end])
    $assembly##
#end
"""
        )
        template.merge({"end": 400})

    def test_array_size(self):
        self.assertEqual(" 3", Template("#set($foo = [1,2,3]) $foo.size()").merge({}))

    def test_array_contains(self):
        template = Template("#set($foo = [1,2,3]) #if($foo.contains($x))found#end")
        self.assertEqual(" found", template.merge({"x": 1}))
        self.assertEqual(" ", template.merge({"x": 10}))

    def test_array_get_item(self):
        self.assertEqual(" 2", Template("#set($foo = [1,2,3]) $foo.get(1)").merge({}))

    def test_array_add_item(self):
        template = Template(
            "#set($foo = [1,2,3])"
            "#set( $ignore = $foo.add('string value') )"
            "#foreach($item in $foo)$item,#end"
        )
        self.assertEqual("1,2,3,string value,", template.merge({}))

    def test_string_length(self):
        template = Template("#set($foo = 'foobar123') $foo.length()")
        self.assertEqual(" 9", template.merge({}))

    def test_string_replace_all(self):
        template = Template("#set($foo = 'foobar123bab') $foo.replaceAll('ba.', 'foo')")
        self.assertEqual(" foofoo123foo", template.merge({}))

    def test_string_starts_with(self):
        template = Template("#if($foo.startsWith('foo'))yes!#end")
        self.assertEqual("yes!", template.merge({"foo": "foobar123"}))
        self.assertEqual("", template.merge({"foo": "nofoobar123"}))

    def test_dict_put_item(self):
        template = Template(
            "#set( $ignore = $test_dict.put('k', 'new value') )"
            "$ignore - $test_dict.k"
        )
        output = template.merge({"test_dict": {"k": "initial value"}})
        self.assertEqual("initial value - new value", output)

    def test_dict_putall_items(self):
        template = Template(
            "#set( $ignore = $test_dict.putAll({'k1': 'v3', 'k2': 'v2'}))"
            "$test_dict.k1 - $test_dict.k2"
        )
        self.assertEqual("v3 - v2", template.merge({"test_dict": {"k1": "v1"}}))

    def test_dict_key_set_loop(self):
        template = Template(
            "#foreach($k in $map.keySet())$k=$map.get($k);#end"
        )
        self.assertEqual("a=1;b=2;", template.merge({"map": {"a": 1, "b": 2}}))

    def test_evaluate(self):
        template = Template(
            """#set($source1 = "abc")
#set($select = "1")
#set($dynamicsource = "$source$select")
## $dynamicsource is now the string '$source1'
#evaluate($dynamicsource)"""
        )
        self.assertEqual("abc", template.merge({}))

    def test_evaluate_shares_the_render_scope(self):
        template = Template("#evaluate('#set($x = 5)')$x")
        self.assertEqual("5", template.merge({}))

    def test_render_is_repeatable(self):
        template = Template(
            "#macro(m $v)[$v]#end#foreach($i in [1..3])#m($i)#set($last = $i)#end$!last"
        )
        first = template.merge({})
        self.assertEqual(first, template.merge({}))
        self.assertEqual("[1][2][3]", first)

    def test_whitespace_is_normalized_in_json_templates(self):
        template = Template(
            """
        {
            #foreach($e in $map.keySet())
                "$e": "$map.get($e)"#if( $foreach.hasNext ),#end
            #end
        }
        """
        )
        result = re.sub(r"\s", "", template.merge({"map": {"test": 123, "test2": "abc"}}))
        self.assertEqual('{"test":"123","test2":"abc"}', result)
