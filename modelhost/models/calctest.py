"""
Reference model: the squares of all positive integers whose square does not exceed NUM.

Output item ``Res`` is a one-dimensional sparse array indexed by the
generated numbers, holding their squares.
"""

PARAMETERS = {
    'NUM': 10,
    'SOLFILE': '',
}


def main(ctx):
    num = ctx.params['NUM']
    numbers = []
    i = 1
    while i * i <= num:
        numbers.append(i)
        i += 1

    ctx.write(f"Numbers generated: {len(numbers)}")

    index = ctx.index_set(numbers, name='Numbers')
    res = ctx.sparse_array([index], {(n,): float(n * n) for n in numbers}, name='Res')
    ctx.initializations_to(ctx.params['SOLFILE'], {'Res': res})
