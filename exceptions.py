#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Custom exceptions for the marketplace server."""


class MarketplaceError(Exception):
  """Base class for all marketplace exceptions."""

  def __init__(
      self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    super().__init__(self.message)


class ResourceNotFoundError(MarketplaceError):
  """Raised when a requested resource is not found."""

  def __init__(self, message: str, code: str = "RESOURCE_NOT_FOUND"):
    super().__init__(message, code=code, status_code=404)


class ItemNotFoundError(ResourceNotFoundError):

  def __init__(self, item_id: int):
    super().__init__(f"Item {item_id} not found", code="ITEM_NOT_FOUND")


class UserNotFoundError(ResourceNotFoundError):

  def __init__(self, user_id: int):
    super().__init__(f"User {user_id} not found", code="USER_NOT_FOUND")


class CategoryNotFoundError(ResourceNotFoundError):

  def __init__(self, category_id: int):
    super().__init__(
        f"Category {category_id} not found", code="CATEGORY_NOT_FOUND"
    )


class TransactionNotFoundError(ResourceNotFoundError):

  def __init__(self, message: str = "Transaction evidence not found"):
    super().__init__(message, code="TRANSACTION_NOT_FOUND")


class ItemUnavailableError(MarketplaceError):
  """Raised when an item is already sold or otherwise not on sale."""

  def __init__(self, message: str = "Item is not for sale"):
    super().__init__(message, code="ITEM_UNAVAILABLE", status_code=403)


class SelfPurchaseError(MarketplaceError):
  """Raised when a seller tries to buy their own item."""

  def __init__(self, message: str = "Cannot buy your own item"):
    super().__init__(message, code="SELF_PURCHASE_FORBIDDEN", status_code=403)


class NotSellerError(MarketplaceError):

  def __init__(self, message: str = "Only the seller can do this"):
    super().__init__(message, code="NOT_SELLER", status_code=403)


class NotBuyerError(MarketplaceError):

  def __init__(self, message: str = "Only the buyer can do this"):
    super().__init__(message, code="NOT_BUYER", status_code=403)


class InvalidStateError(MarketplaceError):
  """Raised when an operation or transition is not allowed in this state."""

  def __init__(self, message: str):
    super().__init__(message, code="INVALID_STATE", status_code=409)


class ShipmentNotDeliveredError(MarketplaceError):
  """Raised when the buyer completes before the carrier confirms delivery."""

  def __init__(self, message: str = "Shipment has not been delivered yet"):
    super().__init__(message, code="SHIPMENT_NOT_DELIVERED", status_code=409)


class BumpNotAllowedError(MarketplaceError):

  def __init__(self, message: str = "Bump not allowed"):
    super().__init__(message, code="BUMP_NOT_ALLOWED", status_code=403)


class InvalidRequestError(MarketplaceError):
  """Raised when the request is invalid (e.g. price out of range)."""

  def __init__(self, message: str):
    super().__init__(message, code="INVALID_REQUEST", status_code=400)


class PaymentDeclinedError(MarketplaceError):
  """Raised when the payment service rejects the charge."""

  def __init__(self, message: str, code: str = "PAYMENT_FAILED"):
    super().__init__(message, code=code, status_code=402)


class GatewayUnavailableError(MarketplaceError):
  """Raised when an external service cannot be reached or times out.

  The local state is left exactly as it was before the call, so the caller may
  retry.
  """

  def __init__(self, message: str, code: str = "GATEWAY_UNAVAILABLE"):
    super().__init__(message, code=code, status_code=503)


class PaymentGatewayUnavailableError(GatewayUnavailableError):

  def __init__(self, message: str = "Payment service is unavailable"):
    super().__init__(message, code="PAYMENT_GATEWAY_UNAVAILABLE")


class ShipmentGatewayUnavailableError(GatewayUnavailableError):

  def __init__(self, message: str = "Shipment service is unavailable"):
    super().__init__(message, code="SHIPMENT_GATEWAY_UNAVAILABLE")
