"""Tests for local value numbering."""

import unittest

from lvn.tests.conftest import build_scenario, collect_lines, line
from lvn import (
    IRBuilder,
    Opcode,
    ConstantInt,
    NumberingStore,
    Expression,
    number_function,
    parse_module,
)


class TestNumberingStore(unittest.TestCase):
    """Numbers for values, pointers and literals."""

    def test_numbers_start_at_one_and_increase(self):
        store = NumberingStore()
        a, b, c = ConstantInt(1), ConstantInt(2), ConstantInt(3)
        self.assertEqual(store.number_of(a), 1)
        self.assertEqual(store.number_of(b), 2)
        self.assertEqual(store.number_of(c), 3)

    def test_same_value_same_number(self):
        store = NumberingStore()
        b = IRBuilder()
        x = b.arg("x")
        first = store.number_of(x)
        store.number_of(b.arg("y"))
        self.assertEqual(store.number_of(x), first)
        self.assertEqual(store.next_number, 3)

    def test_identity_not_content(self):
        """Two equal-looking literals are different values."""
        store = NumberingStore()
        self.assertNotEqual(store.number_of(ConstantInt(5)), store.number_of(ConstantInt(5)))

    def test_constant_interning(self):
        store = NumberingStore()
        five = store.number_of_constant(5)
        store.number_of_constant(7)
        self.assertEqual(store.number_of_constant(5), five)
        self.assertEqual(store.next_number, 3)

    def test_resolve_respects_interning_switch(self):
        interning = NumberingStore()
        self.assertEqual(interning.resolve(ConstantInt(5)), interning.resolve(ConstantInt(5)))

        plain = NumberingStore(intern_constants=False)
        self.assertNotEqual(plain.resolve(ConstantInt(5)), plain.resolve(ConstantInt(5)))

    def test_record_pointer_number_overwrites(self):
        store = NumberingStore()
        ptr = IRBuilder().alloca("p")
        self.assertIsNone(store.pointer_number(ptr))
        store.record_pointer_number(ptr, 4)
        store.record_pointer_number(ptr, 9)
        self.assertEqual(store.pointer_number(ptr), 9)

    def test_pointer_map_separate_from_values(self):
        store = NumberingStore()
        ptr = IRBuilder().alloca("p")
        store.record_pointer_number(ptr, 1)
        self.assertNotIn(ptr, store.value_numbers)


class TestExpression(unittest.TestCase):
    """Canonical expression keys."""

    def test_commutative_ops_sort_operands(self):
        for opcode in (Opcode.ADD, Opcode.MUL):
            self.assertEqual(Expression.canonical(opcode, 3, 7), Expression.canonical(opcode, 7, 3))
            self.assertEqual(Expression.canonical(opcode, 7, 3).lhs, 3)

    def test_non_commutative_ops_keep_order(self):
        for opcode in (Opcode.SUB, Opcode.UDIV, Opcode.SDIV, Opcode.SHL):
            self.assertNotEqual(Expression.canonical(opcode, 3, 7), Expression.canonical(opcode, 7, 3))

    def test_opcode_is_part_of_key(self):
        self.assertNotEqual(Expression.canonical(Opcode.ADD, 1, 2), Expression.canonical(Opcode.MUL, 1, 2))
        self.assertNotEqual(Expression.canonical(Opcode.UDIV, 1, 2), Expression.canonical(Opcode.SDIV, 1, 2))

    def test_keys_hash_and_order_consistently(self):
        a = Expression.canonical(Opcode.ADD, 7, 3)
        b = Expression.canonical(Opcode.ADD, 3, 7)
        self.assertEqual(hash(a), hash(b))
        self.assertEqual({a: 1}[b], 1)
        keys = sorted([Expression.canonical(Opcode.SUB, 2, 1), Expression.canonical(Opcode.ADD, 5, 4)])
        self.assertEqual(keys[0].opcode, "add")


class TestBlockWalker(unittest.TestCase):
    """Numbering and diagnostics produced by number_function."""

    def test_end_to_end_scenario(self):
        fn, insts = build_scenario()
        result = number_function(fn)

        self.assertEqual(result.store.pointer_number(insts["a"]), 1)
        self.assertEqual(result.number(insts["1"]), 1)
        self.assertEqual(result.number(insts["2"]), 2)
        self.assertEqual(result.number(insts["3"]), 2)
        self.assertEqual([r.instruction for r in result.redundant], [insts["3"]])

        self.assertEqual(result.lines, [
            line("store i32 5, ptr %a, align 4", "1 = 1"),
            line("%1 = load i32, ptr %a, align 4", "1 = 1"),
            line("%2 = add i32 %1, %1", "2 = 1 add 1"),
            line("%3 = add i32 %1, %1", "2 = 1 add 1 (redundant)"),
        ])

    def test_determinism(self):
        fn, _ = build_scenario()
        first = number_function(fn)
        second = number_function(fn)
        self.assertEqual(first.lines, second.lines)
        self.assertEqual(
            [r.number for r in first.records],
            [r.number for r in second.records],
        )

    def test_emit_called_once_per_handled_instruction(self):
        fn, _ = build_scenario()
        lines = collect_lines(fn)
        self.assertEqual(len(lines), 4)
        self.assertEqual(lines, number_function(fn).lines)

    def test_numbers_monotonic_without_gaps(self):
        b = IRBuilder()
        x, y, z = b.arg("x"), b.arg("y"), b.arg("z")
        b.add(x, y, "s1")
        b.mul(y, z, "s2")
        b.sub(z, x, "s3")
        result = number_function(b.build())

        allocated = sorted(result.store.value_numbers.values())
        self.assertEqual(allocated, list(range(1, len(allocated) + 1)))
        self.assertEqual(result.store.next_number, 7)

    def test_commutative_redundancy(self):
        b = IRBuilder()
        x, y = b.arg("x"), b.arg("y")
        first = b.add(x, y, "a")
        second = b.add(y, x, "b")
        p1 = b.mul(x, y, "c")
        p2 = b.mul(y, x, "d")
        result = number_function(b.build())

        self.assertEqual(result.number(first), result.number(second))
        self.assertEqual(result.number(p1), result.number(p2))
        self.assertEqual([r.instruction for r in result.redundant], [second, p2])

    def test_non_commutative_not_redundant(self):
        b = IRBuilder()
        x, y = b.arg("x"), b.arg("y")
        d1 = b.sub(x, y, "d1")
        d2 = b.sub(y, x, "d2")
        q1 = b.sdiv(x, y, "q1")
        q2 = b.sdiv(y, x, "q2")
        result = number_function(b.build())

        self.assertNotEqual(result.number(d1), result.number(d2))
        self.assertNotEqual(result.number(q1), result.number(q2))
        self.assertEqual(result.redundant, [])

    def test_non_commutative_same_order_is_redundant(self):
        b = IRBuilder()
        x, y = b.arg("x"), b.arg("y")
        d1 = b.sub(x, y, "d1")
        d2 = b.sub(x, y, "d2")
        result = number_function(b.build())
        self.assertEqual(result.number(d1), result.number(d2))
        self.assertTrue(result.records[-1].redundant)

    def test_store_load_roundtrip(self):
        b = IRBuilder()
        x = b.arg("x")
        p = b.alloca("p")
        b.store(x, p)
        loaded = b.load(p, "v")
        result = number_function(b.build())
        self.assertEqual(result.number(loaded), result.number(x))

    def test_store_load_roundtrip_with_literal(self):
        b = IRBuilder()
        p = b.alloca("p")
        b.store(b.const(42), p)
        loaded = b.load(p, "v")
        result = number_function(b.build())
        self.assertEqual(result.number(loaded), result.store.number_of_constant(42))

    def test_later_store_supersedes_earlier(self):
        b = IRBuilder()
        x, y = b.arg("x"), b.arg("y")
        p = b.alloca("p")
        b.store(x, p)
        b.store(y, p)
        loaded = b.load(p, "v")
        result = number_function(b.build())
        self.assertEqual(result.number(loaded), result.number(y))

    def test_fresh_pointer_load(self):
        b = IRBuilder()
        x = b.arg("x")
        p, q = b.alloca("p"), b.alloca("q")
        b.store(x, p)
        loaded = b.load(q, "v")
        result = number_function(b.build())

        number = result.number(loaded)
        others = [n for v, n in result.store.value_numbers.items() if v is not loaded]
        self.assertNotIn(number, others)
        self.assertEqual(number, result.store.next_number - 1)
        self.assertEqual(result.records[-1].line, line("%v = load i32, ptr %q, align 4", f"{number} = 0"))

    def test_repeated_fresh_loads_get_distinct_numbers(self):
        b = IRBuilder()
        q = b.alloca("q")
        l1 = b.load(q, "l1")
        l2 = b.load(q, "l2")
        result = number_function(b.build())
        self.assertNotEqual(result.number(l1), result.number(l2))

    def test_no_aliasing_between_pointer_values(self):
        b = IRBuilder()
        x = b.arg("x")
        p = b.alloca("p")
        same_slot = b.other("%p2 = getelementptr i32, ptr %p, i64 0", "p2", Opcode.GETELEMENTPTR)
        b.store(x, p)
        loaded = b.load(same_slot, "v")
        result = number_function(b.build())
        self.assertNotEqual(result.number(loaded), result.number(x))

    def test_constant_interning_across_stores(self):
        b = IRBuilder()
        p, q = b.alloca("p"), b.alloca("q")
        s1 = b.store(b.const(5), p)
        s2 = b.store(b.const(5), q)
        result = number_function(b.build())

        self.assertIsNot(s1.value_operand, s2.value_operand)
        self.assertEqual(result.records[0].operands, result.records[1].operands)
        self.assertEqual(result.store.pointer_number(p), result.store.pointer_number(q))

    def test_constant_interning_in_binary_operands(self):
        b = IRBuilder()
        x = b.arg("x")
        first = b.add(x, b.const(1), "a")
        second = b.add(b.const(1), x, "b")
        result = number_function(b.build())
        self.assertEqual(result.number(first), result.number(second))
        self.assertTrue(result.records[-1].redundant)

    def test_without_interning_literals_are_distinct(self):
        b = IRBuilder()
        x = b.arg("x")
        p, q = b.alloca("p"), b.alloca("q")
        b.store(b.const(5), p)
        b.store(b.const(5), q)
        first = b.add(x, b.const(1), "a")
        second = b.add(x, b.const(1), "b")
        result = number_function(b.build(), intern_constants=False)

        self.assertNotEqual(result.store.pointer_number(p), result.store.pointer_number(q))
        self.assertNotEqual(result.number(first), result.number(second))
        self.assertEqual(result.store.constant_numbers, {})

    def test_unnumbered_operand_gets_fresh_number(self):
        b = IRBuilder()
        x, y = b.arg("x"), b.arg("y")
        s = b.xor(x, y, "s")
        result = number_function(b.build())
        self.assertEqual(result.number(x), 1)
        self.assertEqual(result.number(y), 2)
        self.assertEqual(result.number(s), 3)
        self.assertEqual(result.records[0].line, line("%s = xor i32 %x, %y", "3 = 1 xor 2"))

    def test_other_instructions_are_skipped(self):
        b = IRBuilder()
        x = b.arg("x")
        b.alloca("p")
        b.other("%c = icmp sgt i32 %x, 0", "c", Opcode.ICMP)
        b.ret(x)
        result = number_function(b.build())
        self.assertEqual(result.records, [])
        self.assertEqual(result.store.next_number, 1)

    def test_table_spans_blocks_in_order(self):
        b = IRBuilder()
        x, y = b.arg("x"), b.arg("y")
        first = b.add(x, y, "a")
        b.block("next")
        second = b.add(y, x, "b")
        fn = b.build()
        self.assertEqual(len(fn.blocks), 2)

        result = number_function(fn)
        self.assertEqual(result.number(first), result.number(second))

    def test_first_writer_wins(self):
        b = IRBuilder()
        x, y = b.arg("x"), b.arg("y")
        first = b.add(x, y, "a")
        b.add(x, y, "b")
        result = number_function(b.build())
        expr = Expression.canonical(Opcode.ADD, result.number(x), result.number(y))
        self.assertEqual(result.table, {expr: result.number(first)})

    def test_floating_point_ops_are_numbered(self):
        text = """\
define double @f(double %x, double %y) {
  %a = fadd double %x, %y
  %b = fadd fast double %y, %x
  %c = fsub double %x, %y
  %d = fsub double %y, %x
  %e = fmul double %x, %y
  %g = fmul double %y, %x
  ret double %g
}
"""
        lines = collect_lines(parse_module(text).functions[0])
        self.assertEqual(lines, [
            line("%a = fadd double %x, %y", "3 = 1 fadd 2"),
            line("%b = fadd fast double %y, %x", "3 = 2 fadd 1 (redundant)"),
            line("%c = fsub double %x, %y", "4 = 1 fsub 2"),
            line("%d = fsub double %y, %x", "5 = 2 fsub 1"),
            line("%e = fmul double %x, %y", "6 = 1 fmul 2"),
            line("%g = fmul double %y, %x", "6 = 2 fmul 1 (redundant)"),
        ])

    def test_load_through_constant_expression_pointer(self):
        gep = "getelementptr inbounds ([4 x i32], ptr @arr, i64 0, i64 1)"
        text = f"""\
@arr = global [4 x i32] zeroinitializer, align 16

define i32 @f() {{
  store i32 5, ptr {gep}, align 4
  %1 = load i32, ptr {gep}, align 4
  ret i32 %1
}}
"""
        lines = collect_lines(parse_module(text).functions[0])
        self.assertEqual(lines, [
            line(f"store i32 5, ptr {gep}, align 4", "1 = 1"),
            line(f"%1 = load i32, ptr {gep}, align 4", "1 = 1"),
        ])

    def test_analysis_does_not_modify_function(self):
        fn, _ = build_scenario()
        before = [(str(i), list(i.operands)) for i in fn.instructions()]
        number_function(fn)
        after = [(str(i), list(i.operands)) for i in fn.instructions()]
        self.assertEqual(before, after)

    def test_column_width(self):
        fn, insts = build_scenario()
        lines = collect_lines(fn, column_width=60)
        self.assertEqual(lines[0], line("store i32 5, ptr %a, align 4", "1 = 1", width=60))

    def test_long_instruction_text_is_not_truncated(self):
        fn, insts = build_scenario()
        lines = collect_lines(fn, column_width=5)
        self.assertTrue(lines[0].startswith(str(insts["store"]) + " "))


if __name__ == "__main__":
    unittest.main()
