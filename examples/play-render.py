import pyarrow as pa

from twowaysql import TemplateCache, SQLGenerator, format_sql_info, params, render
from twowaysql.functions import ConcatFunction, FunctionRegistry, TransformFunction


class UpperFunction(TransformFunction):
    """Upper case the concatenated chain, registered as ``%UPPER``."""

    def transform(self, chain, negatives):
        concatenated = ConcatFunction().transform(chain, negatives)
        concatenated.params = [p.upper() for p in concatenated.params]
        return concatenated


cache = TemplateCache()
with open("sql/people.sql") as f:
    template = cache.get(f.read(), "sql/people.sql")

generator = SQLGenerator().empty_as_negative()
for values in (
    params(),
    params("minAge", 30).set("namePart", "10%"),
    params("ids", pa.array(range(2500))).on("lock"),
    params("namePart", "").set("order", "name DESC"),
):
    sql, bound = generator.generate(template, values)
    print("---")
    print(format_sql_info(sql, bound[:10], template.resource_info))

registry = FunctionRegistry.default().extend(UPPER=UpperFunction())
sql, bound = render(
    "SELECT * FROM people WHERE name = /* %UPPER $name */'X'",
    params("name", "mario"),
    registry=registry,
)
print("---")
print(format_sql_info(sql, bound))
