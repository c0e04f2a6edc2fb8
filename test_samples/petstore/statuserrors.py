from courier.statuserror import StatusError


class PetError(StatusError):
    # @errzh 宠物不存在
    # @erren pet not found
    PetNotFound = 404000001
    # @errzh 宠物信息不合法
    # @erren invalid pet
    InvalidPet = 400000001
    # @errzh 未授权
    # @erren unauthorized
    Unauthorized = 401000001
