from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt


class CreateOrderIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: StrictInt  # minor units; bounds are checked by OrderService
    content_ref: str = Field(validation_alias=AliasChoices("contentRef", "content_ref"))
    title: str | None = Field(default=None, validation_alias=AliasChoices("title", "noteTitle"))


class CreateOrderOut(BaseModel):
    success: bool = True
    order_id: str = Field(serialization_alias="orderId")
    amount: int
    currency: str
    key: str  # public checkout key id
